import json
import logging
import os
import sys

DEFAULT_LOG_FILE = "/tmp/svn-wc-bridge.log"
_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATE_FORMAT)
    return logging.Formatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (stdout carries the JSON-RPC stream),
            "cli" for stderr logging.
        debug: If True, forces DEBUG regardless of other settings.
        log_file: Custom log file path (overrides SVN_BRIDGE_LOG_FILE).
        debug_format: "text" (default) or "json" for structured output.
        level: Level name from the config file; SVN_BRIDGE_LOG_LEVEL wins.

    Environment variables:
        SVN_BRIDGE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
            Default: WARNING for MCP mode, INFO for CLI mode.
        SVN_BRIDGE_LOG_FILE: Log file path for MCP mode.
            Default: /tmp/svn-wc-bridge.log
    """
    default_level = level or ("WARNING" if mode == "mcp" else "INFO")
    env_level = os.getenv("SVN_BRIDGE_LOG_LEVEL", default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        # Priority: log_file param > env var > default
        final_log_file = log_file or os.getenv(
            "SVN_BRIDGE_LOG_FILE", DEFAULT_LOG_FILE
        )
        file_handler = logging.FileHandler(final_log_file, mode="a")
        file_handler.setFormatter(_make_formatter(debug_format))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_make_formatter(debug_format))
        handlers.append(stderr_handler)

        # --log-file in CLI mode mirrors stderr into a file
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_make_formatter(debug_format))
            handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # charset_normalizer is chatty at INFO when probing command output
    if log_level != logging.DEBUG:
        logging.getLogger("charset_normalizer").setLevel(logging.WARNING)
        logging.getLogger("mcp").setLevel(logging.WARNING)
