"""
Hierarchical configuration loader for svn_wc_bridge.

Discovers YAML config files by convention, supports ``!include`` and
``${VAR:-default}`` interpolation, and merges files with "project wins"
semantics.

Usage:
    from svn_wc_bridge.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".svn_bridge"
CONFIG_ENV_VAR = "SVN_BRIDGE_CONFIG"

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    An unset or empty ``VAR`` yields *default* when given, else ``""``.
    A ``${`` without a closing brace is left as-is.
    """

    def _substitute(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        current = os.environ.get(name)
        if current:
            return current
        return default if default is not None else ""

    return _ENV_VAR_PATTERN.sub(_substitute, value)


def _interpolate_tree(node: Any) -> Any:
    match node:
        case str():
            return interpolate_env_vars(node)
        case dict():
            return {key: _interpolate_tree(val) for key, val in node.items()}
        case list():
            return [_interpolate_tree(item) for item in node]
        case _:
            return node


# ---------------------------------------------------------------------------
# YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader subclass understanding ``!include relative/or/abs.yml``.

    The global ``yaml.SafeLoader`` is left untouched. Each loader instance
    carries the chain of files being loaded so include cycles are reported
    instead of recursing forever.
    """

    def __init__(self, stream, include_chain: list[Path] | None = None):
        super().__init__(stream)
        self.include_chain: list[Path] = include_chain or []


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    if target in loader.include_chain:
        chain = " -> ".join(str(p) for p in [*loader.include_chain, target])
        raise ValueError(f"Circular include detected: {chain}")

    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return load_yaml_file(target, include_chain=[*loader.include_chain, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml_file(
    path: Path, include_chain: list[Path] | None = None
) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh, include_chain=include_chain or [path])
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths, highest precedence first.

    Search order:
        1. ``SVN_BRIDGE_CONFIG`` env var (explicit single path)
        2. ``.svn_bridge/config.yml`` in CWD (project-level)
        3. ``.svn_bridge/config.yaml`` in CWD
        4. ``~/.config/svn_bridge/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / CONFIG_DIR_NAME
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "svn_bridge" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# svn-wc-bridge configuration
#
# Values can also come from environment variables:
#   SVN_BRIDGE_SVN_BINARY, SVN_BRIDGE_LOCALE, SVN_BRIDGE_TIMEOUT,
#   SVN_BRIDGE_USERNAME, SVN_BRIDGE_PASSWORD, SVN_BRIDGE_OVERRIDE_ROOT
#
# svn:
#   binary: svn
#   diff_binary: diff
#   locale: en_US.UTF-8
#   timeout: 30
#   username: ${SVN_USER}
#   password: ${SVN_PASSWORD}
#   override_root: /home/me/checkouts/trunk
#   max_parallel_commands: 4
#
# encoding:
#   default_file_encoding: auto
#   enable_encoding_detection: true
#   encoding_fallbacks: [gbk, gb2312, big5]
#   force_utf8_output: true
#   show_encoding_info: false
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the project default if none exists.

    Does not create anything; see ``ensure_config()``.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / CONFIG_DIR_NAME / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if absent.

    Args:
        target: Explicit path to create. Defaults to ``resolve_config_path()``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest to highest precedence; a file's top-level
    sections replace (not deep-merge) earlier ones. Env var interpolation
    runs after the merge. Returns ``{}`` when no config file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using built-in defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_tree(merged)
