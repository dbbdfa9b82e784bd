"""Persistence for the override working-copy root.

The value lives in ``override_root.json`` inside the state directory
(``~/.config/svn_bridge/`` unless configured otherwise) so it survives
restarts::

    {"version": 1, "override_root": "/home/me/checkout", "updated": "..."}

Writes are atomic: ``save()`` writes a temp file in the same directory and
``os.replace()``s it over the target, so a reader never sees partial data.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "override_root.json"


class OverrideRootStore:
    """Load, save, and clear the persisted override root.

    Args:
        state_dir: Directory holding the state file. Created on first save.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILE_NAME

    def load(self) -> str | None:
        """Return the persisted override root, or ``None``.

        A missing or unreadable state file is treated as "no override" and
        logged; it never prevents startup.
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed %s", self.path)
            return None
        value = data.get("override_root")
        return value if isinstance(value, str) and value else None

    def save(self, override_root: str) -> None:
        """Persist *override_root* atomically."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state = {
            "version": 1,
            "override_root": override_root,
            "updated": datetime.now(timezone.utc).isoformat(),
        }

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved override root to %s", self.path)

    def clear(self) -> None:
        """Remove the persisted value. No-op if nothing is stored."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        logger.debug("Removed %s", self.path)
