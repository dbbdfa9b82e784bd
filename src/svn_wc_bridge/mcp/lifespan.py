"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import EncodingSettings, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_legacy_config
from ..core.async_utils import init_semaphore, run_sync
from ..core.client import SvnClient

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (``svn`` section as fallbacks, ``encoding`` section as-is)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Create SvnClient and check that the svn executable can be started
    - Fail fast if svn is not installed

    On shutdown:
    - Log shutdown message

    Args:
        config_overrides: Optional dict with config values from CLI
            (binary, locale, username, password, insecure, override_root)

    Yields:
        Dict with 'client' key containing the initialized SvnClient

    Raises:
        RuntimeError: If configuration is invalid or svn cannot be run.
    """
    logger.info("MCP server starting...")
    _stderr_print("SVN Working-Copy Bridge starting...")

    # CLI args > env vars (.env loaded first) > YAML config > defaults
    try:
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        encoding: EncodingSettings | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            config_path = config_files[0]
            raw = load_hierarchical_config()
            unified = build_config(raw)
            yaml_fallbacks = {
                k: v
                for k, v in unified.svn.model_dump().items()
                if v is not None
            }
            encoding = to_legacy_config(unified).encoding
            sources.append(f"config file: {config_path}")

        overrides = config_overrides or {}
        config = load_config(
            binary=overrides.get("binary"),
            locale=overrides.get("locale"),
            username=overrides.get("username"),
            password=overrides.get("password"),
            insecure=overrides.get("insecure", False),
            override_root=overrides.get("override_root"),
            yaml_fallbacks=yaml_fallbacks,
            encoding=encoding,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    client = SvnClient(config)
    installed = await run_sync(client.is_installed)
    if not installed:
        logger.error("svn executable not found: %s", config.svn_binary)
        _stderr_print(f"ERROR: '{config.svn_binary}' could not be run.")
        _stderr_print(
            "  Install a Subversion command-line client or set SVN_BRIDGE_SVN_BINARY."
        )
        raise RuntimeError(
            f"svn executable '{config.svn_binary}' not found. "
            "Install a Subversion command-line client or set SVN_BRIDGE_SVN_BINARY."
        )

    logger.info("Using svn executable %s", config.svn_binary)
    _stderr_print(f"  svn executable: {config.svn_binary}")
    if client.override_root:
        _stderr_print(f"  Override root: {client.override_root}")
    init_semaphore(config.max_parallel_commands)
    _stderr_print(f"  Parallel commands: {config.max_parallel_commands}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"client": client}

    logger.info("MCP server shutting down")
    _stderr_print("SVN Working-Copy Bridge shutting down.")
