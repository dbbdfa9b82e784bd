"""
Input validation functions for svn-wc-bridge.

Validates target paths and commit messages before any svn process is
spawned, so bad input fails fast with a readable reason.
"""

import os

# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_target_path(
    path: str, must_exist: bool = True
) -> tuple[bool, str]:
    """
    Validate a file or directory path passed to an svn operation.

    Args:
        path: The path to validate
        must_exist: Require the path to exist on disk. Deleted files
            (``svn remove``, ``svn revert`` of a missing file) pass False.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain NUL characters
        - Must be absolute
        - Must exist, unless must_exist is False
    """
    if not path or not path.strip():
        return (False, format_validation_error("Path", "cannot be empty"))

    if "\x00" in path:
        return (
            False,
            format_validation_error("Path", "cannot contain NUL characters"),
        )

    if not os.path.isabs(os.path.expanduser(path)):
        return (
            False,
            format_validation_error("Path", f"must be absolute: {path}"),
        )

    if must_exist and not os.path.exists(os.path.expanduser(path)):
        return (False, format_validation_error("Path", f"does not exist: {path}"))

    return (True, "")


def validate_commit_message(
    message: str, max_size: int = 100_000
) -> tuple[bool, str]:
    """
    Validate a commit log message.

    Args:
        message: The message to validate
        max_size: Maximum size in bytes (default: 100,000)

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not message or not message.strip():
        return (
            False,
            format_validation_error("Commit message", "cannot be empty"),
        )

    message_bytes = len(message.encode("utf-8"))
    if message_bytes > max_size:
        return (
            False,
            format_validation_error(
                "Commit message", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return (True, "")
