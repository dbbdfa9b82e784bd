"""Diff tool handler for MCP server.

``svn_diff`` runs the reconciliation cascade and reports which stage
produced the text, so an agent can tell a real line diff from a summary.
"""

import mcp.types as types

from ...core.async_utils import run_sync_limited
from ...core.client import SvnClient
from ...core.models import DiffSource
from .errors import require_path
from .registry import WC_READ, ToolSpec

_SOURCE_NOTES = {
    DiffSource.NATIVE: "from svn diff",
    DiffSource.CONTENT_COMPARISON: "from content comparison",
    DiffSource.SYSTEM_DIFF: "from the system diff utility",
    DiffSource.SUMMARY_ONLY: "summary only; no line-level diff available",
}

DIFF_TOOLS = [
    types.Tool(
        name="svn_diff",
        description="Get the difference between a working file and its repository version. Falls back from svn diff to an encoding-aware content comparison, then the system diff utility, then a size/encoding summary.",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Absolute path of a file or directory in a working copy",
                },
            },
            "required": ["path"],
        },
    ),
]


async def _handle_diff(client: SvnClient, args: dict) -> types.CallToolResult:
    """Handle svn_diff."""
    path = require_path(args, must_exist=False)
    result = await run_sync_limited(client.diff, path)

    header = f"Diff of {path} ({_SOURCE_NOTES[result.source]}):"
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=f"{header}\n\n{result.text}")
        ],
        structuredContent={
            "path": result.path,
            "source": result.source.value,
            "identical": result.identical,
            "repository_encoding": result.repository_encoding,
            "working_encoding": result.working_encoding,
        },
    )


DIFF_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=DIFF_TOOLS[0],
        permissions=frozenset({WC_READ}),
        handler=_handle_diff,
    ),
]
