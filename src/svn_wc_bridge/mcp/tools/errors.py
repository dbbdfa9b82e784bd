"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can recover
without human intervention. ``translate_svn_error`` maps the engine's error
taxonomy onto them.
"""

import os

import mcp.types as types

from ...errors import (
    DiffCancelledError,
    NotInstalledError,
    NotInWorkingCopyError,
    OutOfDateError,
    ProcessError,
    ReconciliationError,
    SvnBridgeError,
    ToolError,
)
from ...validators import validate_target_path


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_installed, not_in_working_copy,
            authentication_failed, out_of_date, svn_error, process_error,
            diff_failed, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("out_of_date", "E155011: ...", "Run svn_update, then retry.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_svn_error(error: SvnBridgeError) -> types.CallToolResult:
    """Translate an engine error into a structured error response.

    ``ToolError`` text is passed through verbatim: svn's own message usually
    names the failing path, permission or server.
    """
    match error:
        case NotInstalledError():
            return build_error_response(
                "not_installed",
                str(error),
                "Install Subversion, or set SVN_BRIDGE_SVN_BINARY to the svn executable.",
            )
        case NotInWorkingCopyError():
            return build_error_response(
                "not_in_working_copy",
                str(error),
                "Use wc_root_set to configure a working-copy root that contains this path.",
            )
        case OutOfDateError():
            return build_error_response(
                "out_of_date",
                error.stderr,
                "Run svn_update on the path, then retry the commit.",
            )
        case ToolError() if error.is_authentication_error:
            return build_error_response(
                "authentication_failed",
                error.stderr,
                "Set SVN_BRIDGE_USERNAME and SVN_BRIDGE_PASSWORD, then retry.",
            )
        case ToolError() if error.is_connection_error:
            return build_error_response(
                "connection_error",
                error.stderr,
                "Check network access to the repository server and retry.",
            )
        case ToolError() if error.is_not_found:
            return build_error_response(
                "not_found",
                error.stderr,
                "Use svn_status to check the path is versioned.",
            )
        case ToolError():
            return build_error_response(
                "svn_error",
                error.stderr,
                "Review the svn message above, fix the cause, and retry.",
            )
        case ProcessError() if error.timed_out:
            return build_error_response(
                "timeout",
                str(error),
                "Increase SVN_BRIDGE_TIMEOUT or retry when the server is less busy.",
            )
        case ProcessError():
            return build_error_response(
                "process_error",
                str(error),
                "Check the Subversion installation and configuration (svn --version).",
            )
        case ReconciliationError():
            return build_error_response(
                "diff_failed",
                str(error),
                "Check network access and credentials; svn_status works without the server.",
            )
        case DiffCancelledError():
            return build_error_response(
                "cancelled", str(error), "Retry the request."
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Retry later."
            )


# ---------------------------------------------------------------------------
# Shared argument helpers
# ---------------------------------------------------------------------------


def require_path(args: dict, key: str = "path", must_exist: bool = True) -> str:
    """Return a validated absolute path argument.

    Raises:
        ValueError: If the argument is missing or invalid.
    """
    value = args.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{key} is required")
    is_valid, reason = validate_target_path(value, must_exist=must_exist)
    if not is_valid:
        raise ValueError(reason)
    return os.path.expanduser(value)
