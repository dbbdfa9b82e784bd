"""Canonical file status and the parser for ``svn status`` output.

``parse_status`` accepts both plain output (``M       src/a.ts``) and the
``--xml`` form, and never raises: anything it cannot interpret becomes
``FileStatus.UNKNOWN``.
"""

from __future__ import annotations

import logging
import os
import re
from enum import Enum
from typing import TYPE_CHECKING
from xml.etree import ElementTree

if TYPE_CHECKING:
    from .resolver import TrackedPath
    from .runner import CommandRunner

logger = logging.getLogger(__name__)


class FileStatus(str, Enum):
    """Working-copy status of a single path."""

    UNMODIFIED = "unmodified"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    REPLACED = "replaced"
    CONFLICTED = "conflicted"
    UNTRACKED = "untracked"
    MISSING = "missing"
    IGNORED = "ignored"
    TYPE_CHANGED = "type_changed"
    UNKNOWN = "unknown"

    @property
    def has_changes(self) -> bool:
        return self in CHANGED_STATUSES


CHANGED_STATUSES = frozenset(
    {
        FileStatus.MODIFIED,
        FileStatus.ADDED,
        FileStatus.DELETED,
        FileStatus.REPLACED,
    }
)

# ``item`` attribute of <wc-status>
_XML_KEYWORDS: dict[str, FileStatus] = {
    "normal": FileStatus.UNMODIFIED,
    "none": FileStatus.UNMODIFIED,
    "modified": FileStatus.MODIFIED,
    "added": FileStatus.ADDED,
    "deleted": FileStatus.DELETED,
    "replaced": FileStatus.REPLACED,
    "conflicted": FileStatus.CONFLICTED,
    "unversioned": FileStatus.UNTRACKED,
    "missing": FileStatus.MISSING,
    "ignored": FileStatus.IGNORED,
    "obstructed": FileStatus.TYPE_CHANGED,
}

# First column of plain ``svn status``
_STATUS_LETTERS: dict[str, FileStatus] = {
    "M": FileStatus.MODIFIED,
    "A": FileStatus.ADDED,
    "D": FileStatus.DELETED,
    "R": FileStatus.REPLACED,
    "C": FileStatus.CONFLICTED,
    "?": FileStatus.UNTRACKED,
    "!": FileStatus.MISSING,
    "I": FileStatus.IGNORED,
    "~": FileStatus.TYPE_CHANGED,
}

_ITEM_ATTR_PATTERN = re.compile(r"<wc-status\b[^>]*?\bitem=\"([^\"]+)\"")


def looks_like_xml_status(raw: str) -> bool:
    return "<wc-status" in raw or raw.lstrip().startswith("<?xml")


def _extract_item_keyword(raw: str) -> str | None:
    """Pull the first ``wc-status/@item`` out of XML status output.

    Uses ElementTree when the document is complete, and a targeted pattern
    for fragments (truncated output, a bare ``<wc-status>`` element).
    """
    try:
        root = ElementTree.fromstring(raw.strip())
    except ElementTree.ParseError:
        match = _ITEM_ATTR_PATTERN.search(raw)
        return match.group(1) if match else None

    node = root if root.tag == "wc-status" else root.find(".//wc-status")
    if node is None:
        return None
    return node.get("item")


def parse_status(raw: str) -> FileStatus:
    """Map raw ``svn status`` output for one path onto a ``FileStatus``."""
    if not raw or not raw.strip():
        return FileStatus.UNMODIFIED

    if looks_like_xml_status(raw):
        if "<wc-status" not in raw:
            # <status><target/></status>: nothing to report for the path
            return FileStatus.UNMODIFIED
        keyword = _extract_item_keyword(raw)
        if keyword is not None:
            status = _XML_KEYWORDS.get(keyword, FileStatus.UNKNOWN)
            if status is FileStatus.UNKNOWN:
                logger.debug("Unrecognized status keyword %r", keyword)
            return status
        return FileStatus.UNKNOWN

    letter = raw.strip()[0]
    status = _STATUS_LETTERS.get(letter, FileStatus.UNKNOWN)
    if status is FileStatus.UNKNOWN:
        logger.debug("Unrecognized status code %r", letter)
    return status


_ENTRY_PATTERN = re.compile(
    r"<entry\s+path=\"([^\"]*)\"\s*>\s*<wc-status\b[^>]*?\bitem=\"([^\"]+)\""
)


def parse_status_entries(raw: str) -> list[tuple[str, FileStatus]]:
    """Return ``(path, status)`` for every entry of a multi-path status.

    Plain output is read line by line (status letter in the first column,
    path from the eighth); XML through its ``<entry>`` elements.
    """
    if not raw or not raw.strip():
        return []

    if not looks_like_xml_status(raw):
        entries = []
        for line in raw.splitlines():
            if not line.strip():
                continue
            status = _STATUS_LETTERS.get(line[0], FileStatus.UNKNOWN)
            entries.append((line[8:].strip(), status))
        return entries

    try:
        root = ElementTree.fromstring(raw.strip())
    except ElementTree.ParseError:
        return [
            (path, _XML_KEYWORDS.get(item, FileStatus.UNKNOWN))
            for path, item in _ENTRY_PATTERN.findall(raw)
        ]

    entries = []
    for entry in root.iter("entry"):
        node = entry.find("wc-status")
        item = node.get("item") if node is not None else None
        entries.append(
            (entry.get("path", ""), _XML_KEYWORDS.get(item, FileStatus.UNKNOWN))
        )
    return entries


def summarize_tree_status(raw: str, target: str) -> FileStatus:
    """Collapse recursive status output for a directory into one status.

    The first changed entry anywhere below the directory wins; otherwise
    the directory reports its own entry, or ``UNMODIFIED`` when svn listed
    nothing for it.
    """
    entries = parse_status_entries(raw)
    for _, status in entries:
        if status.has_changes:
            return status

    target = os.path.normpath(target)
    for path, status in entries:
        if os.path.normpath(path) == target:
            return status

    if raw.strip() and not entries and not looks_like_xml_status(raw):
        return FileStatus.UNKNOWN
    return FileStatus.UNMODIFIED


def query_status(runner: CommandRunner, tracked: TrackedPath) -> FileStatus:
    """Run ``svn status`` for one resolved path and parse the result.

    A file is queried on its own (``--depth empty``). A directory is
    queried recursively and reports the first changed entry below it, so a
    folder holding modified files is itself reported as changed.

    Raises:
        ToolError / ProcessError: If the svn invocation fails.
    """
    if os.path.isdir(tracked.path):
        outcome = runner.run(
            ["status", tracked.target],
            tracked.effective_root,
            want_structured_output=True,
        )
        outcome.raise_for_status()
        return summarize_tree_status(outcome.stdout, tracked.relative_path)

    outcome = runner.run(
        ["status", "--depth", "empty", tracked.target],
        tracked.effective_root,
        want_structured_output=True,
    )
    outcome.raise_for_status()
    return parse_status(outcome.stdout)
