"""Flat runtime configuration for the working-copy engine.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SVN_BRIDGE_SVN_BINARY: svn executable (optional, default: svn)
    SVN_BRIDGE_DIFF_BINARY: system diff utility (optional, default: diff)
    SVN_BRIDGE_LOCALE: locale pinned for svn (optional, default: en_US.UTF-8)
    SVN_BRIDGE_TIMEOUT: seconds per svn invocation (optional, default: 30)
    SVN_BRIDGE_USERNAME / SVN_BRIDGE_PASSWORD: credentials (optional, paired)
    SVN_BRIDGE_INSECURE: trust unverified server certificates (optional)
    SVN_BRIDGE_OVERRIDE_ROOT: override working-copy root (optional)
    SVN_BRIDGE_STATE_DIR: persisted state directory (optional)
    SVN_BRIDGE_MAX_PARALLEL: max concurrent svn processes (optional, default: 4)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path.home() / ".config" / "svn_bridge"


@dataclass(frozen=True)
class EncodingSettings:
    default_file_encoding: str = "auto"
    enable_encoding_detection: bool = True
    encoding_fallbacks: tuple[str, ...] = ("gbk", "gb2312", "big5")
    force_utf8_output: bool = True
    show_encoding_info: bool = False


@dataclass
class Config:
    svn_binary: str = "svn"
    diff_binary: str = "diff"
    locale: str = "en_US.UTF-8"
    timeout: float = 30.0
    username: str | None = None
    password: str | None = None
    insecure: bool = False
    override_root: str | None = None
    state_dir: str | None = None
    max_parallel_commands: int = 4
    encoding: EncodingSettings = field(default_factory=EncodingSettings)

    @property
    def state_path(self) -> Path:
        if self.state_dir:
            return Path(self.state_dir).expanduser()
        return DEFAULT_STATE_DIR

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a value is out of range or credentials are half-set.
    """
    config.svn_binary = config.svn_binary.strip()
    if not config.svn_binary:
        raise ValueError(
            "svn binary cannot be empty. Set SVN_BRIDGE_SVN_BINARY or "
            "'binary' in config.yml."
        )

    if not config.locale.strip():
        raise ValueError("Locale cannot be empty. Set SVN_BRIDGE_LOCALE.")

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid timeout '{config.timeout}': must be a positive number of seconds"
        )

    if bool(config.username) != bool(config.password):
        raise ValueError(
            "svn username and password must be set together. "
            "Set both SVN_BRIDGE_USERNAME and SVN_BRIDGE_PASSWORD."
        )

    if config.override_root is not None:
        config.override_root = config.override_root.strip() or None
    if config.override_root and not os.path.isabs(config.override_root):
        raise ValueError(
            f"Invalid override root '{config.override_root}': must be an absolute path"
        )

    if config.insecure:
        logger.warning(
            "WARNING: server certificate verification disabled (insecure=True). "
            "Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    binary: str | None = None,
    locale: str | None = None,
    username: str | None = None,
    password: str | None = None,
    insecure: bool = False,
    override_root: str | None = None,
    yaml_fallbacks: dict | None = None,
    encoding: EncodingSettings | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        binary: Override svn executable.
        locale: Override locale pinned for svn.
        username: Override svn username.
        password: Override svn password.
        insecure: Trust unverified certificates (CLI flag).
        override_root: Override working-copy root.
        yaml_fallbacks: Dict of values from the YAML ``svn`` section.
        encoding: Encoding settings from the YAML ``encoding`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any value is invalid after checking all sources.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_binary = (
        binary or os.getenv("SVN_BRIDGE_SVN_BINARY") or fb.get("binary") or "svn"
    )
    final_diff = (
        os.getenv("SVN_BRIDGE_DIFF_BINARY") or fb.get("diff_binary") or "diff"
    )
    final_locale = (
        locale
        or os.getenv("SVN_BRIDGE_LOCALE")
        or fb.get("locale")
        or "en_US.UTF-8"
    )
    final_username = (
        username or os.getenv("SVN_BRIDGE_USERNAME") or fb.get("username")
    )
    final_password = (
        password or os.getenv("SVN_BRIDGE_PASSWORD") or fb.get("password")
    )
    final_override = (
        override_root
        or os.getenv("SVN_BRIDGE_OVERRIDE_ROOT")
        or fb.get("override_root")
    )
    final_state_dir = os.getenv("SVN_BRIDGE_STATE_DIR") or fb.get("state_dir")

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("SVN_BRIDGE_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("SVN_BRIDGE_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid SVN_BRIDGE_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
    elif "timeout" in fb:
        final_timeout = float(fb["timeout"])
    else:
        final_timeout = 30.0

    max_parallel_raw = os.getenv("SVN_BRIDGE_MAX_PARALLEL")
    if max_parallel_raw is not None:
        try:
            final_max_parallel = int(max_parallel_raw)
        except ValueError:
            raise ValueError(
                f"Invalid SVN_BRIDGE_MAX_PARALLEL '{max_parallel_raw}': must be a number between 1 and 64"
            ) from None
        if not (1 <= final_max_parallel <= 64):
            raise ValueError(
                f"Invalid SVN_BRIDGE_MAX_PARALLEL '{max_parallel_raw}': must be a number between 1 and 64"
            )
    elif "max_parallel_commands" in fb:
        final_max_parallel = int(fb["max_parallel_commands"])
    else:
        final_max_parallel = 4

    config = Config(
        svn_binary=final_binary,
        diff_binary=final_diff,
        locale=final_locale,
        timeout=final_timeout,
        username=final_username,
        password=final_password,
        insecure=final_insecure,
        override_root=final_override,
        state_dir=final_state_dir,
        max_parallel_commands=final_max_parallel,
        encoding=encoding or EncodingSettings(),
    )

    validate_config(config)

    return config
