"""Process runner for the ``svn`` command-line client.

Every svn invocation in the package goes through ``CommandRunner.run``,
which pins the locale so svn prints parseable English, blocks interactive
prompts, enforces a timeout and an output ceiling, and returns a
``CommandOutcome``. Callers decide what a failure means:
``CommandOutcome.raise_for_status()`` turns it into a ``ToolError`` (stderr
present) or a ``ProcessError`` (no stderr).

The runner never retries; fallback policy lives with the caller.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass

from ..config import Config
from ..errors import NotInstalledError, ProcessError, ToolError
from .encoding import decode_output

logger = logging.getLogger(__name__)

# Per stream; svn log/diff on large repositories can be tens of megabytes
MAX_OUTPUT_BYTES = 50 * 1024 * 1024

NON_INTERACTIVE_EDITOR = "echo"

_DIFF_SUBCOMMANDS = frozenset({"diff", "di"})


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


@dataclass(frozen=True)
class CommandOutcome:
    """Result of one svn invocation.

    ``raw_stdout`` keeps the undecoded bytes for callers that run their own
    encoding detection (``svn cat``).
    """

    command: tuple[str, ...]
    stdout: str
    stderr: str
    exit_code: int
    raw_stdout: bytes = b""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def raise_for_status(self) -> None:
        """Raise the classified error for a failed invocation."""
        if self.ok:
            return
        if self.stderr.strip():
            raise ToolError(self.stderr, self.exit_code)
        raise ProcessError(list(self.command), self.exit_code)


def escape_target(target: str) -> str:
    """Make a relative path safe to pass to svn as a target argument.

    svn reads the text after the last ``@`` as a peg revision; a trailing
    ``@`` makes it an empty peg so the path is taken literally. A leading
    ``-`` would be parsed as an option, so such paths get a ``./`` prefix.
    """
    if target.startswith("-"):
        target = "./" + target
    if "@" in target:
        return target + "@"
    return target


def mask_secrets(argv: list[str]) -> str:
    """Render *argv* for logging with any password value hidden."""
    shown: list[str] = []
    hide_next = False
    for arg in argv:
        if hide_next:
            shown.append("***")
            hide_next = False
            continue
        shown.append(arg)
        if arg == "--password":
            hide_next = True
    return " ".join(shown)


class CommandRunner:
    def __init__(self, config: Config):
        self.config = config

    def build_environment(self) -> dict[str, str]:
        """Return the child environment with locale and editor pinned."""
        env = dict(os.environ)
        env["SVN_EDITOR"] = NON_INTERACTIVE_EDITOR
        if self.config.encoding.force_utf8_output:
            locale = self.config.locale
            for key in ("LANG", "LC_ALL", "LC_CTYPE", "LC_MESSAGES"):
                env[key] = locale
            env["LANGUAGE"] = locale
        return env

    def build_command(
        self,
        command: list[str],
        want_structured_output: bool = False,
        credentials: Credentials | None = None,
    ) -> list[str]:
        """Return the full argv for *command* (subcommand first)."""
        if not command:
            raise ValueError("svn command cannot be empty")

        argv = [self.config.svn_binary, *command]
        if want_structured_output and "--xml" not in argv:
            argv.append("--xml")
        if command[0] in _DIFF_SUBCOMMANDS:
            # binary or type-mismatched files would otherwise abort the call
            if "--force" not in argv:
                argv.append("--force")
            if "--internal-diff" not in argv:
                argv.append("--internal-diff")

        argv.append("--non-interactive")
        if credentials is not None:
            argv += [
                "--username",
                credentials.username,
                "--password",
                credentials.password,
            ]
        if self.config.insecure:
            argv.append("--trust-server-cert")
        return argv

    def run(
        self,
        command: list[str],
        working_directory: str,
        want_structured_output: bool = False,
        credentials: Credentials | None = None,
    ) -> CommandOutcome:
        """Run one svn subcommand in *working_directory*.

        Raises:
            NotInstalledError: If the svn executable cannot be started.
            ProcessError: On timeout, oversized output, or a missing
                working directory.
        """
        argv = self.build_command(command, want_structured_output, credentials)

        if not os.path.isdir(working_directory):
            raise ProcessError(
                argv[1:],
                None,
                detail=f"working directory does not exist: {working_directory}",
            )

        logger.debug("svn: %s (cwd=%s)", mask_secrets(argv), working_directory)
        try:
            completed = subprocess.run(
                argv,
                cwd=working_directory,
                env=self.build_environment(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self.config.timeout,
            )
        except FileNotFoundError:
            raise NotInstalledError(self.config.svn_binary) from None
        except subprocess.TimeoutExpired:
            logger.warning(
                "svn %s timed out after %.0fs", command[0], self.config.timeout
            )
            raise ProcessError(
                argv[1:], None, timed_out=True
            ) from None

        for stream_name, data in (
            ("stdout", completed.stdout),
            ("stderr", completed.stderr),
        ):
            if len(data) > MAX_OUTPUT_BYTES:
                raise ProcessError(
                    argv[1:],
                    completed.returncode,
                    detail=f"{stream_name} exceeded {MAX_OUTPUT_BYTES} bytes",
                )

        outcome = CommandOutcome(
            command=tuple(argv[1:]),
            stdout=decode_output(completed.stdout),
            stderr=decode_output(completed.stderr),
            exit_code=completed.returncode,
            raw_stdout=completed.stdout,
        )
        if outcome.ok:
            logger.debug(
                "svn %s succeeded, %d chars of output",
                command[0],
                len(outcome.stdout),
            )
        else:
            logger.debug(
                "svn %s exited %d: %s",
                command[0],
                outcome.exit_code,
                outcome.stderr.strip()[:500],
            )
        return outcome

    def check(
        self,
        command: list[str],
        working_directory: str,
        want_structured_output: bool = False,
        credentials: Credentials | None = None,
    ) -> str:
        """Run *command* and return stdout, raising on failure."""
        outcome = self.run(
            command, working_directory, want_structured_output, credentials
        )
        outcome.raise_for_status()
        return outcome.stdout

    def is_installed(self) -> bool:
        try:
            completed = subprocess.run(
                [self.config.svn_binary, "--version", "--quiet"],
                env=self.build_environment(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self.config.timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
        return completed.returncode == 0
