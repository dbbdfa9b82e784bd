"""Working-copy write tool handlers for MCP server.

This module implements add, remove, commit, update, revert and checkout.
Every path-based handler resolves the path to its working-copy root
through the client, so paths under an override root work the same as
ordinary ones.
"""

import mcp.types as types

from ...core.async_utils import run_sync_limited
from ...core.client import SvnClient
from ...validators import validate_commit_message
from .errors import require_path
from .registry import WC_WRITE, ToolSpec

_PATH_PROPERTY = {
    "type": "string",
    "description": "Absolute path of a file or directory in a working copy",
}

OPERATION_TOOLS = [
    types.Tool(
        name="svn_add",
        description="Schedule an unversioned file or directory for addition.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_remove",
        description="Schedule a versioned file or directory for deletion.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_commit",
        description="Commit a file or directory, or several files in one revision (files + base_path). Fails with out_of_date when svn_update is needed first.",
        inputSchema={
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": "Commit log message",
                },
                "path": _PATH_PROPERTY,
                "files": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Absolute file paths to commit together (use with base_path instead of path)",
                },
                "base_path": {
                    "type": "string",
                    "description": "Directory whose working-copy root all files belong to",
                },
            },
            "required": ["message"],
        },
    ),
    types.Tool(
        name="svn_update",
        description="Update a file or directory to the latest repository revision.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_revert",
        description="Discard local changes to a file, or to a directory recursively.",
        inputSchema={
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        },
    ),
    types.Tool(
        name="svn_checkout",
        description="Check out a repository URL into a local directory (created if missing). Returns svn's output and, when count_files is set, the number of files in the repository.",
        inputSchema={
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "Repository URL (svn://, http(s)://, file://)",
                },
                "target_directory": {
                    "type": "string",
                    "description": "Absolute path of the directory to check out into",
                },
                "count_files": {
                    "type": "boolean",
                    "description": "List the repository first and report its file count (default: false)",
                },
            },
            "required": ["url", "target_directory"],
        },
    ),
]


def _output_result(action: str, path: str, output: str) -> types.CallToolResult:
    text = f"{action} {path}."
    if output.strip():
        text += f"\n\n{output.strip()}"
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"path": path, "output": output},
    )


async def _handle_add(client: SvnClient, args: dict) -> types.CallToolResult:
    """Handle svn_add."""
    path = require_path(args)
    output = await run_sync_limited(client.add, path)
    return _output_result("Added", path, output)


async def _handle_remove(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_remove."""
    path = require_path(args, must_exist=False)
    output = await run_sync_limited(client.remove, path)
    return _output_result("Removed", path, output)


async def _handle_commit(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_commit (single path or a file list)."""
    message = args.get("message", "")
    is_valid, reason = validate_commit_message(message)
    if not is_valid:
        raise ValueError(reason)

    files = args.get("files")
    if files:
        if not isinstance(files, list):
            raise ValueError("files must be a list of paths")
        base_path = require_path(args, key="base_path")
        files = [require_path({"path": f}, must_exist=False) for f in files]
        output = await run_sync_limited(
            client.commit_files, files, message, base_path
        )
        return _output_result(f"Committed {len(files)} files under", base_path, output)

    path = require_path(args, must_exist=False)
    output = await run_sync_limited(client.commit, path, message)
    return _output_result("Committed", path, output)


async def _handle_update(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_update."""
    path = require_path(args, must_exist=False)
    output = await run_sync_limited(client.update, path)
    return _output_result("Updated", path, output)


async def _handle_revert(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_revert."""
    path = require_path(args, must_exist=False)
    output = await run_sync_limited(client.revert, path)
    return _output_result("Reverted", path, output)


async def _handle_checkout(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_checkout."""
    url = args.get("url")
    if not url or not isinstance(url, str):
        raise ValueError("url is required")
    target = require_path(args, key="target_directory", must_exist=False)

    file_count = None
    if args.get("count_files"):
        file_count = await run_sync_limited(client.repository_file_count, url)

    output = await run_sync_limited(client.checkout, url, target)
    result = _output_result(f"Checked out {url} into", target, output)
    result.structuredContent["url"] = url
    result.structuredContent["file_count"] = file_count
    return result


OPERATION_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=OPERATION_TOOLS[0],
        permissions=frozenset({WC_WRITE}),
        handler=_handle_add,
    ),
    ToolSpec(
        tool=OPERATION_TOOLS[1],
        permissions=frozenset({WC_WRITE}),
        handler=_handle_remove,
    ),
    ToolSpec(
        tool=OPERATION_TOOLS[2],
        permissions=frozenset({WC_WRITE}),
        handler=_handle_commit,
    ),
    ToolSpec(
        tool=OPERATION_TOOLS[3],
        permissions=frozenset({WC_WRITE}),
        handler=_handle_update,
    ),
    ToolSpec(
        tool=OPERATION_TOOLS[4],
        permissions=frozenset({WC_WRITE}),
        handler=_handle_revert,
    ),
    ToolSpec(
        tool=OPERATION_TOOLS[5],
        permissions=frozenset({WC_WRITE}),
        handler=_handle_checkout,
    ),
]
