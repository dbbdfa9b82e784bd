"""Pydantic models returned by the working-copy engine.

- ``DiffSource``: which reconciliation stage produced a diff.
- ``DiffResult``: diff text plus its provenance.
- ``WorkingCopyInfo``: the fields of ``svn info --xml`` callers use.

All models are frozen (immutable) and recomputed on every request.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class DiffSource(str, Enum):
    """Reconciliation stage that produced a ``DiffResult``."""

    NATIVE = "native"
    CONTENT_COMPARISON = "content_comparison"
    SYSTEM_DIFF = "system_diff"
    SUMMARY_ONLY = "summary_only"


class DiffResult(BaseModel):
    """Difference between the working file and its repository version.

    Attributes:
        path: Absolute path the diff was requested for.
        text: Unified diff, summary, or "no differences" message.
        source: Stage that produced ``text``.
        identical: True when the two versions were found equal.
        repository_encoding: Detected encoding of the repository version
            (content stages only).
        working_encoding: Detected encoding of the working file.
    """

    path: str
    text: str
    source: DiffSource
    identical: bool = False
    repository_encoding: str | None = None
    working_encoding: str | None = None

    model_config = {"frozen": True}


class WorkingCopyInfo(BaseModel):
    """Repository coordinates of a working-copy path (``svn info``)."""

    path: str
    url: str | None = None
    relative_url: str | None = None
    repository_root: str | None = None
    repository_uuid: str | None = None
    revision: int | None = None
    node_kind: str | None = None
    last_changed_revision: int | None = None
    last_changed_author: str | None = None
    last_changed_date: str | None = None

    model_config = {"frozen": True}
