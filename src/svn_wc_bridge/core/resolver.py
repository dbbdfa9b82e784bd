"""Map filesystem paths onto the working-copy root a command should use.

Resolution is a short sequence of checks, each yielding an explicit
outcome:

1. ``svn info`` in the path's own directory (or inside the directory, for a
   directory argument). Success makes that directory the effective root.
2. ``svn info`` at the override root with the path relativized against it,
   provided the relative path does not climb out of the root.
3. ``NotInWorkingCopy`` carrying the reason each check failed.

The override root is injected at construction. ``set_override_root`` and
``clear_override_root`` update it under a lock and persist it through an
``OverrideRootStore`` when one is given.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field

from ..errors import (
    NotInstalledError,
    NotInWorkingCopyError,
    SvnBridgeError,
)
from .override_store import OverrideRootStore
from .runner import CommandRunner, escape_target

logger = logging.getLogger(__name__)

METADATA_DIR = ".svn"


@dataclass(frozen=True)
class TrackedPath:
    """A path together with the root and relative target to run svn with."""

    path: str
    effective_root: str
    relative_path: str
    via_override: bool = False

    @property
    def target(self) -> str:
        """``relative_path`` ready to pass as an svn argument."""
        return escape_target(self.relative_path)


@dataclass(frozen=True)
class NotInWorkingCopy:
    path: str
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def to_error(self) -> NotInWorkingCopyError:
        return NotInWorkingCopyError(self.path, list(self.reasons))


Resolution = TrackedPath | NotInWorkingCopy


def has_metadata(directory: str) -> bool:
    """Return True if *directory* is a working-copy root (has ``.svn``)."""
    return os.path.isdir(os.path.join(directory, METADATA_DIR))


def relative_within(root: str, path: str) -> str | None:
    """Return *path* relative to *root*, or None if it lies outside."""
    try:
        relative = os.path.relpath(path, root)
    except ValueError:
        # different drives on Windows
        return None
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return None
    if os.path.isabs(relative):
        return None
    return relative.replace(os.sep, "/")


class RootResolver:
    """Resolve paths against their natural working copy or an override root.

    Args:
        runner: Runner used for the ``svn info`` checks.
        override_root: Initial override root. When ``None`` and a *store* is
            given, the persisted value is loaded. Either is accepted only if
            it holds ``.svn`` metadata.
        store: Optional persistence for the override root.
    """

    def __init__(
        self,
        runner: CommandRunner,
        override_root: str | None = None,
        store: OverrideRootStore | None = None,
    ):
        self.runner = runner
        self._store = store
        self._lock = threading.Lock()
        self._override_root = self._initial_override_root(override_root)

    def _initial_override_root(self, configured: str | None) -> str | None:
        """Pick the starting override root: configured value, else persisted.

        A root without ``.svn`` metadata is dropped with a warning; a stale
        persisted one is also removed from the store.
        """
        if configured:
            root = os.path.abspath(os.path.expanduser(configured))
            if has_metadata(root):
                return root
            logger.warning(
                "Ignoring override root %s: no %s directory", root, METADATA_DIR
            )
            return None

        if self._store is None:
            return None
        persisted = self._store.load()
        if not persisted:
            return None
        root = os.path.abspath(persisted)
        if not has_metadata(root):
            logger.warning(
                "Discarding persisted override root %s: no %s directory",
                root,
                METADATA_DIR,
            )
            self._store.clear()
            return None
        logger.info("Loaded persisted override root %s", root)
        return root

    @property
    def override_root(self) -> str | None:
        return self._override_root

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _check_info(self, directory: str, relative: str) -> str | None:
        """Run ``svn info`` for *relative* in *directory*.

        Returns None on success, otherwise a one-line failure reason.
        """
        if not os.path.isdir(directory):
            return f"{directory}: directory does not exist"
        try:
            outcome = self.runner.run(
                ["info", escape_target(relative)], directory
            )
        except NotInstalledError:
            raise
        except SvnBridgeError as e:
            return f"{directory}: {e}"
        if outcome.ok:
            return None
        reason = outcome.stderr.strip() or f"exit code {outcome.exit_code}"
        return f"{directory}: {reason.splitlines()[0]}"

    def resolve(self, path: str) -> Resolution:
        """Resolve *path* to a ``TrackedPath`` or ``NotInWorkingCopy``.

        Never raises for paths outside a working copy; only a missing svn
        executable propagates (``NotInstalledError``).
        """
        path = os.path.abspath(path)
        if os.path.isdir(path):
            directory, relative = path, "."
        else:
            directory, relative = os.path.split(path)

        reasons: list[str] = []
        match self._check_info(directory, relative):
            case None:
                logger.debug("Resolved %s in %s", path, directory)
                return TrackedPath(path, directory, relative)
            case reason:
                reasons.append(reason)

        override = self.override_root
        if override is None:
            reasons.append("no override root configured")
            return NotInWorkingCopy(path, tuple(reasons))

        override_relative = relative_within(override, path)
        if override_relative is None:
            reasons.append(f"outside override root {override}")
            return NotInWorkingCopy(path, tuple(reasons))

        match self._check_info(override, override_relative):
            case None:
                logger.debug(
                    "Resolved %s via override root %s as %s",
                    path,
                    override,
                    override_relative,
                )
                return TrackedPath(
                    path, override, override_relative, via_override=True
                )
            case reason:
                reasons.append(reason)
                return NotInWorkingCopy(path, tuple(reasons))

    def require(self, path: str) -> TrackedPath:
        """Like ``resolve`` but raise ``NotInWorkingCopyError`` on failure."""
        match self.resolve(path):
            case TrackedPath() as tracked:
                return tracked
            case NotInWorkingCopy() as missing:
                raise missing.to_error()

    def is_in_working_copy(self, path: str) -> bool:
        return isinstance(self.resolve(path), TrackedPath)

    # ------------------------------------------------------------------
    # Override root
    # ------------------------------------------------------------------

    def set_override_root(self, root: str) -> str:
        """Validate and install *root* as the override root.

        Returns:
            The absolute override root.

        Raises:
            NotInWorkingCopyError: If *root* has no ``.svn`` metadata.
        """
        root = os.path.abspath(os.path.expanduser(root))
        if not os.path.isdir(root):
            raise NotInWorkingCopyError(root, ["directory does not exist"])
        if not has_metadata(root):
            raise NotInWorkingCopyError(
                root, [f"no {METADATA_DIR} directory; not a working-copy root"]
            )
        with self._lock:
            if self._store is not None:
                self._store.save(root)
            self._override_root = root
        logger.info("Override root set to %s", root)
        return root

    def clear_override_root(self) -> None:
        with self._lock:
            if self._store is not None:
                self._store.clear()
            self._override_root = None
        logger.info("Override root cleared")
