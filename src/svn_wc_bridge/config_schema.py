"""Unified configuration schema for svn_wc_bridge.

Defines Pydantic models for the config file structure with dedicated
sections for the Subversion client, text encodings and logging. Includes an
adapter producing the flat ``Config`` dataclass the engine consumes.

Usage:
    from svn_wc_bridge.config_schema import (
        UnifiedConfig, build_config, to_legacy_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_legacy_config(unified, cli_overrides={"locale": "C.UTF-8"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SvnConfig(BaseModel):
    """Subversion client settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    binary: str = Field(default="svn", description="svn executable")
    diff_binary: str = Field(
        default="diff", description="System diff utility for fallback diffs"
    )
    locale: str = Field(
        default="en_US.UTF-8",
        description="Locale pinned for every svn invocation",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        le=3600,
        description="Seconds before an svn invocation is killed",
    )
    username: str | None = Field(default=None, description="svn username")
    password: str | None = Field(default=None, description="svn password")
    insecure: bool = Field(
        default=False,
        description="Trust unverified server certificates (development only)",
    )
    override_root: str | None = Field(
        default=None,
        description="Working-copy root used when a path's ancestry is not one",
    )
    state_dir: str | None = Field(
        default=None,
        description="Directory holding persisted state (override root)",
    )
    max_parallel_commands: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum concurrent svn processes (1-64)",
    )

    model_config = {"frozen": True}


class EncodingConfig(BaseModel):
    """Text encoding detection settings.

    Attributes:
        default_file_encoding: ``auto`` to detect, otherwise a codec name
            that bypasses detection.
        enable_encoding_detection: When false, the default encoding is
            used for every buffer.
        encoding_fallbacks: Regional encodings tried in order after UTF-8.
        force_utf8_output: Normalise text handed to external tools to UTF-8.
        show_encoding_info: Annotate diff output with detected encodings.
    """

    default_file_encoding: str = Field(default="auto")
    enable_encoding_detection: bool = Field(default=True)
    encoding_fallbacks: list[str] = Field(
        default_factory=lambda: ["gbk", "gb2312", "big5"]
    )
    force_utf8_output: bool = Field(default=True)
    show_encoding_info: bool = Field(default=False)

    model_config = {"frozen": True}

    @field_validator("encoding_fallbacks")
    @classmethod
    def _validate_codecs(cls, value: list[str]) -> list[str]:
        import codecs

        for name in value:
            try:
                codecs.lookup(name)
            except LookupError:
                raise ValueError(f"Unknown encoding '{name}'") from None
        return value

    @field_validator("default_file_encoding")
    @classmethod
    def _validate_default(cls, value: str) -> str:
        import codecs

        if value == "auto":
            return value
        try:
            codecs.lookup(value)
        except LookupError:
            raise ValueError(f"Unknown encoding '{value}'") from None
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()`` is valid.
    """

    svn: SvnConfig = Field(default_factory=SvnConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_legacy_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the flat ``Config`` dataclass,
    applying CLI overrides on top.

    Precedence: CLI override > unified config value > dataclass default.

    CLI override keys: binary, locale, timeout, username, password,
    insecure, override_root, state_dir.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        ``Config`` instance (NOT validated; call ``validate_config()``).
    """
    # Import here to avoid circular imports (config.py imports config_schema)
    from .config import Config, EncodingSettings

    overrides = cli_overrides or {}
    svn = unified.svn
    enc = unified.encoding

    return Config(
        svn_binary=overrides.get("binary") or svn.binary,
        diff_binary=svn.diff_binary,
        locale=overrides.get("locale") or svn.locale,
        timeout=float(overrides.get("timeout") or svn.timeout),
        username=overrides.get("username") or svn.username,
        password=overrides.get("password") or svn.password,
        insecure=overrides.get("insecure", False) or svn.insecure,
        override_root=overrides.get("override_root") or svn.override_root,
        state_dir=overrides.get("state_dir") or svn.state_dir,
        max_parallel_commands=svn.max_parallel_commands,
        encoding=EncodingSettings(
            default_file_encoding=enc.default_file_encoding,
            enable_encoding_detection=enc.enable_encoding_detection,
            encoding_fallbacks=tuple(enc.encoding_fallbacks),
            force_utf8_output=enc.force_utf8_output,
            show_encoding_info=enc.show_encoding_info,
        ),
    )
