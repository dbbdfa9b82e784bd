"""Error taxonomy for svn-wc-bridge.

Every failure the engine can surface derives from ``SvnBridgeError``:

- ``NotInstalledError``: the ``svn`` executable cannot be started.
- ``NotInWorkingCopyError``: root resolution failed for a path.
- ``ProcessError``: non-zero exit with an empty error stream (or a timeout).
- ``ToolError``: non-zero exit with stderr text; the text is kept verbatim
  because it usually carries actionable authentication/permission detail.
- ``OutOfDateError``: a ``ToolError`` raised by commits that need an update.
- ``ReconciliationError``: every diff strategy was exhausted.

Encoding problems never raise; they degrade to lossy UTF-8 decoding.
"""

from __future__ import annotations

import re

# svn prints errors as "svn: E155007: '/tmp/x' is not a working copy"
_ERROR_CODE_PATTERN = re.compile(r"\bE(\d{6})\b")

AUTH_ERROR_CODES = frozenset({"E170001", "E215004"})
OUT_OF_DATE_CODES = frozenset({"E155011", "E160028", "E170004"})
CONNECTION_ERROR_CODES = frozenset({"E170013", "E175002", "E731001"})
NOT_FOUND_CODES = frozenset({"E200014", "E155007", "E155010", "E170000"})

_AUTH_MARKERS = (
    "authentication failed",
    "authorization failed",
    "username or password",
)


class SvnBridgeError(Exception):
    """Base class for all svn-wc-bridge errors."""


class NotInstalledError(SvnBridgeError):
    """The Subversion command-line client could not be executed."""

    def __init__(self, executable: str):
        self.executable = executable
        super().__init__(
            f"Subversion client '{executable}' not found. "
            "Install Subversion or set SVN_BRIDGE_SVN_BINARY."
        )


class NotInWorkingCopyError(SvnBridgeError):
    """A path could not be mapped onto any working-copy root."""

    def __init__(self, path: str, reasons: list[str] | None = None):
        self.path = path
        self.reasons = list(reasons or [])
        message = f"'{path}' is not inside a Subversion working copy"
        if self.reasons:
            message += ": " + "; ".join(self.reasons)
        super().__init__(message)


class ProcessError(SvnBridgeError):
    """The client exited non-zero without an error stream, or timed out."""

    def __init__(
        self,
        command: list[str],
        exit_code: int | None,
        timed_out: bool = False,
        detail: str = "",
    ):
        self.command = list(command)
        self.exit_code = exit_code
        self.timed_out = timed_out
        if timed_out:
            message = f"svn {' '.join(self.command[:1])} timed out"
        else:
            message = (
                f"svn {' '.join(self.command[:1])} failed with exit code "
                f"{exit_code}"
            )
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class ToolError(SvnBridgeError):
    """The client reported an error on stderr.

    Attributes:
        stderr: The error stream, verbatim.
        exit_code: Process exit status.
        error_codes: ``E######`` codes found in ``stderr``, in order.
    """

    def __init__(self, stderr: str, exit_code: int = 1):
        self.stderr = stderr.strip()
        self.exit_code = exit_code
        self.error_codes = [
            f"E{code}" for code in _ERROR_CODE_PATTERN.findall(self.stderr)
        ]
        super().__init__(self.stderr)

    def has_code(self, codes: frozenset[str]) -> bool:
        return any(code in codes for code in self.error_codes)

    @property
    def is_authentication_error(self) -> bool:
        if self.has_code(AUTH_ERROR_CODES):
            return True
        lowered = self.stderr.lower()
        return any(marker in lowered for marker in _AUTH_MARKERS)

    @property
    def is_out_of_date(self) -> bool:
        return (
            self.has_code(OUT_OF_DATE_CODES)
            or "out of date" in self.stderr.lower()
            or "out-of-date" in self.stderr.lower()
        )

    @property
    def is_connection_error(self) -> bool:
        return (
            self.has_code(CONNECTION_ERROR_CODES)
            or "unable to connect" in self.stderr.lower()
        )

    @property
    def is_not_found(self) -> bool:
        return self.has_code(NOT_FOUND_CODES)

    def friendly_message(self) -> str:
        """Map well-known failures onto short user guidance."""
        match self:
            case e if e.is_authentication_error:
                return "Authentication failed: check username and password"
            case e if e.is_connection_error:
                return (
                    "Unable to connect to the Subversion server: check the "
                    "network connection and repository URL"
                )
            case e if e.has_code(frozenset({"E200014"})):
                return "Repository URL not found: check the repository address"
            case e if "certificate" in e.stderr.lower():
                return "SSL certificate verification failed"
            case _:
                return self.stderr


class OutOfDateError(ToolError):
    """Commit rejected because the working copy is behind the repository."""


class ReconciliationError(SvnBridgeError):
    """Every diff strategy failed.

    The message joins the error of every stage that was attempted so the
    root cause stays visible.
    """

    def __init__(self, path: str, stage_errors: list[str]):
        self.path = path
        self.stage_errors = list(stage_errors)
        detail = "\n".join(self.stage_errors) or "no strategy produced a result"
        super().__init__(f"Failed to compute diff for '{path}':\n{detail}")


class DiffCancelledError(SvnBridgeError):
    """A multi-stage diff was cancelled between stages."""
