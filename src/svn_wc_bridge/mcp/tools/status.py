"""Read-only working-copy tool handlers for MCP server.

This module implements status, change detection, log and info tools. All
handlers use run_sync_limited() so concurrent requests never start more svn
processes than the configured limit.
"""

from typing import Any

import mcp.types as types

from ...core.async_utils import gather_limited, run_sync_limited
from ...core.client import SvnClient
from ...core.status import FileStatus
from ...errors import NotInWorkingCopyError
from .errors import require_path
from .registry import WC_READ, ToolSpec

_PATH_PROPERTY = {
    "type": "string",
    "description": "Absolute path of a file or directory in a working copy",
}

# Tool definitions for list_tools()
STATUS_TOOLS = [
    types.Tool(
        name="svn_status",
        description="Get the working-copy status of a file or directory: unmodified, modified, added, deleted, replaced, conflicted, untracked, missing, ignored, type_changed or unknown.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_status_many",
        description="Get the status of several paths at once. Paths outside any working copy report 'unknown'.",
        inputSchema={
            "type": "object",
            "properties": {
                "paths": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Absolute paths to query",
                    "minItems": 1,
                    "maxItems": 200,
                },
            },
            "required": ["paths"],
        },
    ),
    types.Tool(
        name="svn_has_changes",
        description="Check whether a file differs from its repository version. Uses status first and compares content only when status is unknown; answers true when it cannot tell, so commits are never blocked.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_log",
        description="Get the most recent log entries for a file or directory as raw svn log text.",
        inputSchema={
            "type": "object",
            "properties": {
                "path": _PATH_PROPERTY,
                "limit": {
                    "type": "integer",
                    "description": "Number of log entries (default: 10, max: 100)",
                    "default": 10,
                    "minimum": 1,
                    "maximum": 100,
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_info",
        description="Get repository coordinates of a path: URL, repository root, revision and last change.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
]


async def _handle_status(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_status."""
    path = require_path(args, must_exist=False)
    status = await run_sync_limited(client.status, path)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=f"{path}: {status.value}")
        ],
        structuredContent={"path": path, "status": status.value},
    )


async def _handle_status_many(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_status_many."""
    paths = args.get("paths")
    if not paths or not isinstance(paths, list):
        raise ValueError("paths must be a non-empty list")
    paths = [
        require_path({"path": p}, must_exist=False) for p in paths[:200]
    ]

    async def _fetch(path: str) -> dict[str, Any]:
        try:
            status = await run_sync_limited(client.status, path)
        except NotInWorkingCopyError:
            status = FileStatus.UNKNOWN
        return {"path": path, "status": status.value}

    results = await gather_limited([_fetch(p) for p in paths])
    changed = sum(1 for r in results if FileStatus(r["status"]).has_changes)

    lines = [f"{len(results)} paths, {changed} with changes:"]
    lines += [f"- {r['path']}: {r['status']}" for r in results]
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={"statuses": results, "changed": changed},
    )


async def _handle_has_changes(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_has_changes."""
    path = require_path(args, must_exist=False)
    changed = await run_sync_limited(client.has_changes, path)
    text = f"{path} has changes." if changed else f"{path} has no changes."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"path": path, "has_changes": changed},
    )


async def _handle_log(client: SvnClient, args: dict) -> types.CallToolResult:
    """Handle svn_log."""
    path = require_path(args, must_exist=False)
    limit = min(max(1, int(args.get("limit", 10))), 100)
    log_text = await run_sync_limited(client.log, path, limit)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=log_text or "No log entries.")
        ],
    )


async def _handle_info(client: SvnClient, args: dict) -> types.CallToolResult:
    """Handle svn_info."""
    path = require_path(args, must_exist=False)
    info = await run_sync_limited(client.info, path)

    lines = [f"Path: {info.path}"]
    if info.url:
        lines.append(f"URL: {info.url}")
    if info.repository_root:
        lines.append(f"Repository Root: {info.repository_root}")
    if info.revision is not None:
        lines.append(f"Revision: {info.revision}")
    if info.last_changed_revision is not None:
        lines.append(
            f"Last Changed: r{info.last_changed_revision} by "
            f"{info.last_changed_author or 'unknown'} on "
            f"{info.last_changed_date or 'unknown date'}"
        )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=info.model_dump(),
    )


# ToolSpec list for registry-based dispatch
STATUS_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=STATUS_TOOLS[0],
        permissions=frozenset({WC_READ}),
        handler=_handle_status,
    ),
    ToolSpec(
        tool=STATUS_TOOLS[1],
        permissions=frozenset({WC_READ}),
        handler=_handle_status_many,
    ),
    ToolSpec(
        tool=STATUS_TOOLS[2],
        permissions=frozenset({WC_READ}),
        handler=_handle_has_changes,
    ),
    ToolSpec(
        tool=STATUS_TOOLS[3],
        permissions=frozenset({WC_READ}),
        handler=_handle_log,
    ),
    ToolSpec(
        tool=STATUS_TOOLS[4],
        permissions=frozenset({WC_READ}),
        handler=_handle_info,
    ),
]
