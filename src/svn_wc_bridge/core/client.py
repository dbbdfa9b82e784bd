import logging
import os
import tempfile
import threading
from typing import Iterable
from xml.etree import ElementTree

from ..config import Config
from ..errors import (
    NotInstalledError,
    NotInWorkingCopyError,
    OutOfDateError,
    ProcessError,
    ReconciliationError,
    SvnBridgeError,
    ToolError,
)
from ..validators import validate_commit_message
from .diff import DiffReconciler, Viewer
from .models import DiffResult, WorkingCopyInfo
from .override_store import OverrideRootStore
from .resolver import RootResolver, relative_within
from .runner import CommandOutcome, CommandRunner, Credentials, escape_target
from .status import FileStatus, query_status

logger = logging.getLogger(__name__)

# ``svn info`` lines worth echoing back from a connection test
_CONNECTION_INFO_PREFIXES = ("Repository Root:", "Revision:", "Last Changed Date:")


class SvnClient:
    def __init__(
        self,
        config: Config,
        runner: CommandRunner | None = None,
        resolver: RootResolver | None = None,
    ):
        self.config = config
        self.runner = runner or CommandRunner(config)
        self.resolver = resolver or RootResolver(
            self.runner,
            override_root=config.override_root,
            store=OverrideRootStore(config.state_path),
        )
        self.reconciler = DiffReconciler(self.runner, self.resolver, config)

    # ------------------------------------------------------------------
    # Invocation helpers
    # ------------------------------------------------------------------

    def _credentials(self) -> Credentials | None:
        if not self.config.has_credentials:
            return None
        return Credentials(self.config.username, self.config.password)

    def _run(
        self,
        command: list[str],
        cwd: str,
        want_structured_output: bool = False,
    ) -> str:
        """Run a command, retrying once with configured credentials.

        The first attempt relies on svn's own credential cache. Only an
        authentication failure triggers the retry.
        """
        outcome = self.runner.run(command, cwd, want_structured_output)
        if self._should_retry_with_credentials(outcome):
            logger.info(
                "svn %s failed authentication; retrying with configured credentials",
                command[0],
            )
            outcome = self.runner.run(
                command, cwd, want_structured_output, self._credentials()
            )
        outcome.raise_for_status()
        return outcome.stdout

    def _should_retry_with_credentials(self, outcome: CommandOutcome) -> bool:
        if outcome.ok or not outcome.stderr.strip():
            return False
        if not self.config.has_credentials:
            return False
        return ToolError(outcome.stderr, outcome.exit_code).is_authentication_error

    def is_installed(self) -> bool:
        return self.runner.is_installed()

    # ------------------------------------------------------------------
    # Working-copy root
    # ------------------------------------------------------------------

    @property
    def override_root(self) -> str | None:
        return self.resolver.override_root

    def set_override_root(self, root: str) -> str:
        return self.resolver.set_override_root(root)

    def clear_override_root(self) -> None:
        self.resolver.clear_override_root()

    def is_in_working_copy(self, path: str) -> bool:
        return self.resolver.is_in_working_copy(path)

    # ------------------------------------------------------------------
    # Status and diff
    # ------------------------------------------------------------------

    def status(self, path: str) -> FileStatus:
        """Return the status of *path*.

        svn failures degrade to ``FileStatus.UNKNOWN``.

        Raises:
            NotInWorkingCopyError: If *path* resolves to no working copy.
            NotInstalledError: If svn is not installed.
        """
        tracked = self.resolver.require(path)
        try:
            return query_status(self.runner, tracked)
        except (ToolError, ProcessError) as e:
            logger.warning("svn status failed for %s: %s", path, e)
            return FileStatus.UNKNOWN

    def status_many(self, paths: Iterable[str]) -> dict[str, FileStatus]:
        """Return statuses for several paths; unresolvable paths are UNKNOWN."""
        results: dict[str, FileStatus] = {}
        for path in paths:
            try:
                results[path] = self.status(path)
            except NotInWorkingCopyError as e:
                logger.debug("%s", e)
                results[path] = FileStatus.UNKNOWN
        return results

    def diff(
        self, path: str, cancel_event: threading.Event | None = None
    ) -> DiffResult:
        """Return the reconciled diff of *path*.

        When every stage failed on authentication and credentials are
        configured, the cascade is run once more with them.
        """
        try:
            return self.reconciler.get_diff(path, cancel_event)
        except ReconciliationError as e:
            credentials = self._credentials()
            if credentials is None or not any(
                ToolError(error).is_authentication_error for error in e.stage_errors
            ):
                raise
            logger.info("Retrying diff of %s with configured credentials", path)
            return self.reconciler.get_diff(path, cancel_event, credentials)

    def has_changes(self, path: str) -> bool:
        return self.reconciler.has_changes(path)

    def show_side_by_side(self, path: str, viewer: Viewer) -> bool:
        return self.reconciler.show_side_by_side(path, viewer)

    # ------------------------------------------------------------------
    # Working-copy operations
    # ------------------------------------------------------------------

    def add(self, path: str) -> str:
        tracked = self.resolver.require(path)
        return self._run(["add", tracked.target], tracked.effective_root)

    def remove(self, path: str) -> str:
        tracked = self.resolver.require(path)
        return self._run(["remove", tracked.target], tracked.effective_root)

    def _commit(self, targets: list[str], message: str, cwd: str) -> str:
        is_valid, reason = validate_commit_message(message)
        if not is_valid:
            raise ValueError(reason)
        try:
            return self._run(["commit", *targets, "-m", message], cwd)
        except ToolError as e:
            if e.is_out_of_date:
                raise OutOfDateError(e.stderr, e.exit_code) from e
            raise

    def commit(self, path: str, message: str) -> str:
        """Commit a file or directory.

        Raises:
            OutOfDateError: If the working copy must be updated first.
            ValueError: If *message* is empty or too large.
        """
        tracked = self.resolver.require(path)
        return self._commit([tracked.target], message, tracked.effective_root)

    def commit_files(
        self, files: list[str], message: str, base_path: str
    ) -> str:
        """Commit several files in one revision.

        Every file must lie under the working-copy root that *base_path*
        resolves to.

        Raises:
            ValueError: If *files* is empty or *message* is invalid.
            NotInWorkingCopyError: If a file lies outside that root.
            OutOfDateError: If the working copy must be updated first.
        """
        if not files:
            raise ValueError("No files to commit")
        base = self.resolver.require(base_path)
        root = base.effective_root

        targets: list[str] = []
        for file_path in files:
            relative = relative_within(root, os.path.abspath(file_path))
            if relative is None:
                raise NotInWorkingCopyError(
                    file_path, [f"outside working-copy root {root}"]
                )
            targets.append(escape_target(relative))

        logger.info("Committing %d files from %s", len(targets), root)
        return self._commit(targets, message, root)

    def update(self, path: str) -> str:
        tracked = self.resolver.require(path)
        return self._run(["update", tracked.target], tracked.effective_root)

    def revert(self, path: str) -> str:
        """Revert a file, or a directory recursively."""
        tracked = self.resolver.require(path)
        if os.path.isdir(tracked.path):
            command = ["revert", "-R", tracked.target]
        else:
            command = ["revert", tracked.target]
        return self._run(command, tracked.effective_root)

    def log(self, path: str, limit: int = 10) -> str:
        """Return raw ``svn log`` text for the last *limit* revisions."""
        if limit < 1:
            raise ValueError(f"Log limit must be at least 1, got {limit}")
        tracked = self.resolver.require(path)
        return self._run(
            ["log", tracked.target, "-l", str(limit)], tracked.effective_root
        )

    def info(self, path: str) -> WorkingCopyInfo:
        tracked = self.resolver.require(path)
        output = self._run(
            ["info", tracked.target],
            tracked.effective_root,
            want_structured_output=True,
        )
        return parse_info(output, tracked.path)

    def checkout(self, url: str, target_directory: str) -> str:
        """Check out *url* into *target_directory*, creating it if needed.

        A non-empty target is allowed (svn merges into it) but logged.
        """
        target = os.path.abspath(os.path.expanduser(target_directory))
        os.makedirs(target, exist_ok=True)
        leftovers = [name for name in os.listdir(target) if name != ".svn"]
        if leftovers:
            logger.warning(
                "Checkout target %s is not empty (%d entries)",
                target,
                len(leftovers),
            )

        parent, name = os.path.split(target)
        logger.info("Checking out %s into %s", url, target)
        return self._run(["checkout", url, escape_target(name)], parent)

    def repository_file_count(self, url: str) -> int | None:
        """Count files (not directories) under *url* with ``svn list -R``.

        Returns None if the listing fails.
        """
        try:
            output = self._run(["list", "-R", url], tempfile.gettempdir())
        except (ToolError, ProcessError) as e:
            logger.warning("Could not list %s: %s", url, e)
            return None
        entries = [line.strip() for line in output.splitlines() if line.strip()]
        return sum(1 for entry in entries if not entry.endswith("/"))

    def test_connection(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
    ) -> tuple[bool, str]:
        """Check that *url* is reachable with the given or configured credentials.

        Returns:
            ``(True, summary)`` with repository root, revision and last
            change date, or ``(False, friendly error message)``.
        """
        if username and password:
            credentials = Credentials(username, password)
        else:
            credentials = self._credentials()

        try:
            outcome = self.runner.run(
                ["info", url], tempfile.gettempdir(), credentials=credentials
            )
            outcome.raise_for_status()
        except NotInstalledError as e:
            return (False, str(e))
        except ToolError as e:
            return (False, e.friendly_message())
        except ProcessError as e:
            if e.timed_out:
                return (
                    False,
                    "Connection timed out: the server took too long to respond",
                )
            return (False, str(e))

        summary = [
            line.strip()
            for line in outcome.stdout.splitlines()
            if line.strip().startswith(_CONNECTION_INFO_PREFIXES)
        ]
        return (True, "\n".join(summary) or "Connected; repository is reachable")


def parse_info(xml_text: str, path: str) -> WorkingCopyInfo:
    """Parse ``svn info --xml`` output for a single entry.

    Raises:
        SvnBridgeError: If the output is not parseable or has no entry.
    """
    try:
        root = ElementTree.fromstring(xml_text.strip())
    except ElementTree.ParseError as e:
        raise SvnBridgeError(f"Unparseable svn info output for {path}: {e}") from e

    entry = root.find("entry")
    if entry is None:
        raise SvnBridgeError(f"svn info returned no entry for {path}")

    def _text(xpath: str) -> str | None:
        node = entry.find(xpath)
        return node.text if node is not None and node.text else None

    def _int(value: str | None) -> int | None:
        return int(value) if value is not None and value.isdigit() else None

    commit = entry.find("commit")
    return WorkingCopyInfo(
        path=path,
        url=_text("url"),
        relative_url=_text("relative-url"),
        repository_root=_text("repository/root"),
        repository_uuid=_text("repository/uuid"),
        revision=_int(entry.get("revision")),
        node_kind=entry.get("kind"),
        last_changed_revision=_int(commit.get("revision"))
        if commit is not None
        else None,
        last_changed_author=_text("commit/author"),
        last_changed_date=_text("commit/date"),
    )
