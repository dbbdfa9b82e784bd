"""Diff reconciliation: a cascade of increasingly conservative strategies.

``svn diff`` is not always trustworthy: it can come back empty for files
whose content differs only in encoding or line endings, and it fails
outright when the working copy metadata is in an odd state. The
reconciler therefore runs an ordered list of stages:

1. ``native_stage``: ``svn diff`` with whitespace/EOL-insensitive options.
2. ``content_stage``: repository version (``svn cat -r BASE``) and the
   working file, both decoded through ``encoding.decode_bytes``, compared
   as text.
3. ``system_diff_stage``: both texts written to a temporary directory and
   compared with the system ``diff -u``.
4. ``summary_stage``: sizes, size delta and encodings when no line-level
   diff can be produced.

Each stage takes ``(context, carry)`` and returns either a ``DiffResult``
(terminal) or the carry for the next stage. The driver loop in
``DiffReconciler.reconcile`` stops at the first ``DiffResult``. Only the
content stage can end the cascade in failure (``ReconciliationError``),
and its message lists every stage error collected so far.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Union

from ..config import Config
from ..errors import (
    DiffCancelledError,
    NotInstalledError,
    ReconciliationError,
    SvnBridgeError,
)
from .encoding import DecodedText, decode_bytes, decode_output
from .models import DiffResult, DiffSource
from .resolver import RootResolver, TrackedPath
from .runner import CommandRunner, Credentials
from .status import FileStatus, query_status

logger = logging.getLogger(__name__)

NO_DIFFERENCES_MESSAGE = (
    "No differences: the working copy matches the repository version."
)
REPOSITORY_LABEL = "repository version"
WORKING_LABEL = "working copy"
NATIVE_DIFF_OPTIONS = "--ignore-space-change --ignore-eol-style"

# Opens (repository_file, working_file, title) in some viewer
Viewer = Callable[[str, str, str], None]


@dataclass
class DiffContext:
    """Per-request state shared by the stages."""

    tracked: TrackedPath
    runner: CommandRunner
    config: Config
    credentials: Credentials | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return os.path.basename(self.tracked.path) or self.tracked.relative_path

    def record(self, stage: str, message: str) -> None:
        logger.debug("%s failed for %s: %s", stage, self.tracked.path, message)
        self.errors.append(f"{stage}: {message}")


@dataclass(frozen=True)
class ContentPair:
    """Decoded repository and working versions of a file."""

    repository: DecodedText
    working: DecodedText


Carry = Union[ContentPair, None]
Stage = Callable[[DiffContext, Carry], Union[DiffResult, Carry]]


def _outcome_error(outcome) -> str:
    return outcome.stderr.strip() or f"exit code {outcome.exit_code}"


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def native_stage(ctx: DiffContext, carry: Carry) -> DiffResult | Carry:
    """Ask svn for the diff. Empty output or an error passes to the next stage."""
    try:
        outcome = ctx.runner.run(
            ["diff", ctx.tracked.target, "-x", NATIVE_DIFF_OPTIONS],
            ctx.tracked.effective_root,
            credentials=ctx.credentials,
        )
    except NotInstalledError:
        raise
    except SvnBridgeError as e:
        ctx.record("native diff", str(e))
        return carry

    if not outcome.ok:
        ctx.record("native diff", _outcome_error(outcome))
        return carry

    if outcome.stdout.strip():
        return DiffResult(
            path=ctx.tracked.path,
            text=outcome.stdout,
            source=DiffSource.NATIVE,
        )

    if os.path.isdir(ctx.tracked.path):
        # no content to compare for a directory
        return DiffResult(
            path=ctx.tracked.path,
            text=NO_DIFFERENCES_MESSAGE,
            source=DiffSource.NATIVE,
            identical=True,
        )

    logger.debug("svn diff returned nothing for %s", ctx.tracked.path)
    return carry


def load_contents(ctx: DiffContext) -> ContentPair:
    """Fetch and decode the repository and working versions.

    Raises:
        ReconciliationError: If the repository version cannot be obtained.
    """
    error: str | None = None
    try:
        outcome = ctx.runner.run(
            ["cat", "-r", "BASE", ctx.tracked.target],
            ctx.tracked.effective_root,
            credentials=ctx.credentials,
        )
    except NotInstalledError:
        raise
    except SvnBridgeError as e:
        error = str(e)
    else:
        if not outcome.ok:
            error = _outcome_error(outcome)

    if error is not None:
        ctx.record("repository content", error)
        raise ReconciliationError(ctx.tracked.path, ctx.errors)

    try:
        working_bytes = Path(ctx.tracked.path).read_bytes()
    except FileNotFoundError:
        # deleted locally; compare against empty content
        working_bytes = b""
    except OSError as e:
        ctx.record("working content", str(e))
        raise ReconciliationError(ctx.tracked.path, ctx.errors) from e

    settings = ctx.config.encoding
    return ContentPair(
        repository=decode_bytes(outcome.raw_stdout, settings),
        working=decode_bytes(working_bytes, settings),
    )


def content_stage(ctx: DiffContext, carry: Carry) -> DiffResult | Carry:
    pair = load_contents(ctx)
    if pair.repository.text == pair.working.text:
        return DiffResult(
            path=ctx.tracked.path,
            text=NO_DIFFERENCES_MESSAGE,
            source=DiffSource.CONTENT_COMPARISON,
            identical=True,
            repository_encoding=pair.repository.encoding,
            working_encoding=pair.working.encoding,
        )
    logger.info(
        "Content of %s differs (%s vs %s)",
        ctx.tracked.path,
        pair.repository.encoding,
        pair.working.encoding,
    )
    return pair


def relabel_unified_diff(
    text: str, repository_file: str, working_file: str, name: str
) -> str:
    """Replace temporary file names in the ``---``/``+++`` header."""
    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if line.startswith("@@"):
            break
        if line.startswith(f"--- {repository_file}"):
            lines[index] = f"--- {name}\t({REPOSITORY_LABEL})\n"
        elif line.startswith(f"+++ {working_file}"):
            lines[index] = f"+++ {name}\t({WORKING_LABEL})\n"
    return "".join(lines)


def system_diff_stage(ctx: DiffContext, carry: Carry) -> DiffResult | Carry:
    """Run ``diff -u`` over temporary copies of both versions.

    ``diff`` exits 1 when the inputs differ; that is the success case here.
    The temporary directory is removed whatever happens.
    """
    if carry is None:
        return carry
    diff_binary = ctx.config.diff_binary

    with tempfile.TemporaryDirectory(prefix="svn-wc-bridge-") as tmp:
        repository_file = os.path.join(tmp, "repository")
        working_file = os.path.join(tmp, "working")
        Path(repository_file).write_bytes(carry.repository.text.encode("utf-8"))
        Path(working_file).write_bytes(carry.working.text.encode("utf-8"))

        try:
            completed = subprocess.run(
                [diff_binary, "-u", repository_file, working_file],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=ctx.config.timeout,
            )
        except FileNotFoundError:
            ctx.record("system diff", f"'{diff_binary}' not found")
            return carry
        except subprocess.TimeoutExpired:
            ctx.record("system diff", f"'{diff_binary}' timed out")
            return carry
        except OSError as e:
            ctx.record("system diff", f"'{diff_binary}' could not run: {e}")
            return carry

    output = decode_output(completed.stdout)
    if completed.returncode != 1 or not output.strip():
        detail = decode_output(completed.stderr).strip()
        ctx.record(
            "system diff",
            detail or f"'{diff_binary}' exited {completed.returncode}",
        )
        return carry

    return DiffResult(
        path=ctx.tracked.path,
        text=relabel_unified_diff(
            output, repository_file, working_file, ctx.display_name
        ),
        source=DiffSource.SYSTEM_DIFF,
        repository_encoding=carry.repository.encoding,
        working_encoding=carry.working.encoding,
    )


def summary_stage(ctx: DiffContext, carry: Carry) -> DiffResult | Carry:
    """Describe the difference when no line-level diff is available."""
    if carry is None:
        return carry
    repository, working = carry.repository, carry.working
    delta = working.byte_length - repository.byte_length
    name = ctx.display_name

    lines = [
        f"--- {name}\t({REPOSITORY_LABEL})",
        f"+++ {name}\t({WORKING_LABEL})",
        "",
        "Content differs, but no line-level diff could be produced.",
        f"Repository version: {repository.byte_length} bytes, "
        f"{len(repository.text)} characters ({repository.encoding})",
        f"Working copy: {working.byte_length} bytes, "
        f"{len(working.text)} characters ({working.encoding})",
        f"Size change: {delta:+d} bytes",
        "",
        "Note: svn diff returned no output and the system diff utility "
        "could not be used. The file can still be committed.",
    ]
    if ctx.errors:
        lines.append("Details:")
        lines.extend(f"  {error}" for error in ctx.errors)

    return DiffResult(
        path=ctx.tracked.path,
        text="\n".join(lines) + "\n",
        source=DiffSource.SUMMARY_ONLY,
        repository_encoding=repository.encoding,
        working_encoding=working.encoding,
    )


DEFAULT_STAGES: tuple[Stage, ...] = (
    native_stage,
    content_stage,
    system_diff_stage,
    summary_stage,
)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class DiffReconciler:
    """Run the stage cascade for diff requests.

    Args:
        runner: Runner for svn invocations.
        resolver: Resolver mapping paths to working-copy roots.
        config: Runtime configuration (diff binary, timeout, encodings).
        stages: Stage functions in order; defaults to ``DEFAULT_STAGES``.
    """

    def __init__(
        self,
        runner: CommandRunner,
        resolver: RootResolver,
        config: Config,
        stages: tuple[Stage, ...] = DEFAULT_STAGES,
    ):
        self.runner = runner
        self.resolver = resolver
        self.config = config
        self.stages = stages

    def reconcile(
        self,
        ctx: DiffContext,
        cancel_event: threading.Event | None = None,
    ) -> DiffResult:
        carry: Carry = None
        for stage in self.stages:
            if cancel_event is not None and cancel_event.is_set():
                raise DiffCancelledError(
                    f"Diff for '{ctx.tracked.path}' cancelled before "
                    f"{stage.__name__}"
                )
            outcome = stage(ctx, carry)
            if isinstance(outcome, DiffResult):
                logger.debug(
                    "Diff for %s produced by %s",
                    ctx.tracked.path,
                    outcome.source.value,
                )
                return self._annotate(outcome)
            carry = outcome
        raise ReconciliationError(ctx.tracked.path, ctx.errors)

    def _annotate(self, result: DiffResult) -> DiffResult:
        if not self.config.encoding.show_encoding_info:
            return result
        if result.repository_encoding is None:
            return result
        header = (
            f"Encoding: {REPOSITORY_LABEL} {result.repository_encoding}, "
            f"{WORKING_LABEL} {result.working_encoding}\n"
        )
        return result.model_copy(update={"text": header + result.text})

    def get_diff(
        self,
        path: str,
        cancel_event: threading.Event | None = None,
        credentials: Credentials | None = None,
    ) -> DiffResult:
        """Return the diff of *path* against its repository version.

        Raises:
            NotInWorkingCopyError: If *path* cannot be resolved.
            ReconciliationError: If the repository version is unobtainable.
            DiffCancelledError: If *cancel_event* was set between stages.
        """
        tracked = self.resolver.require(path)
        ctx = DiffContext(
            tracked=tracked,
            runner=self.runner,
            config=self.config,
            credentials=credentials,
        )
        return self.reconcile(ctx, cancel_event)

    def has_changes(self, path: str) -> bool:
        """Return True if *path* differs from its repository version.

        The status verdict is used when it is known. Only when status is
        ``UNKNOWN`` (or could not be read) are contents compared; if that
        fails too, the answer is True so no legitimate commit is blocked.
        """
        tracked: TrackedPath | None = None
        try:
            tracked = self.resolver.require(path)
            status = query_status(self.runner, tracked)
        except SvnBridgeError as e:
            logger.warning("Status of %s unavailable: %s", path, e)
            status = FileStatus.UNKNOWN

        if status is not FileStatus.UNKNOWN:
            return status.has_changes

        if tracked is None:
            logger.warning("Cannot compare %s; assuming changed", path)
            return True
        try:
            ctx = DiffContext(tracked=tracked, runner=self.runner, config=self.config)
            pair = load_contents(ctx)
        except SvnBridgeError as e:
            logger.warning("Content comparison for %s failed: %s", path, e)
            return True
        return pair.repository.text != pair.working.text

    def show_side_by_side(self, path: str, viewer: Viewer) -> bool:
        """Hand the repository and working versions of *path* to *viewer*.

        The repository version is written to a temporary file that is
        removed once *viewer* returns. Returns False when there is nothing
        to show or the repository version cannot be fetched; a failing
        viewer is logged and still counts as shown.
        """
        if not self.has_changes(path):
            logger.info("%s has no changes; nothing to compare", path)
            return False

        try:
            tracked = self.resolver.require(path)
            ctx = DiffContext(tracked=tracked, runner=self.runner, config=self.config)
            pair = load_contents(ctx)
        except SvnBridgeError as e:
            logger.error("Cannot show %s side by side: %s", path, e)
            return False

        name = ctx.display_name
        title = f"{name} ({REPOSITORY_LABEL} | {WORKING_LABEL})"
        with tempfile.TemporaryDirectory(prefix="svn-wc-bridge-") as tmp:
            repository_file = os.path.join(tmp, name)
            Path(repository_file).write_bytes(
                pair.repository.text.encode("utf-8")
            )
            try:
                viewer(repository_file, tracked.path, title)
            except Exception:
                logger.exception("Viewer failed for %s", path)
        return True
