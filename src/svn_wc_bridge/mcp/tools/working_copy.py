"""Override-root and connectivity tool handlers for MCP server.

The override root is the escape hatch for checkouts whose root sits several
levels above the files being worked on. Setting it validates the ``.svn``
marker and persists the value across restarts.
"""

import mcp.types as types

from ...core.async_utils import run_sync, run_sync_limited
from ...core.client import SvnClient
from .registry import WC_ADMIN, WC_READ, ToolSpec

WORKING_COPY_TOOLS = [
    types.Tool(
        name="wc_root_get",
        description="Show the configured override working-copy root, if any.",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="wc_root_set",
        description="Set the override working-copy root used when a path's own directory is not a working copy. The directory must contain .svn metadata. Persists across restarts.",
        inputSchema={
            "type": "object",
            "properties": {
                "root": {
                    "type": "string",
                    "description": "Absolute path of the working-copy root",
                },
            },
            "required": ["root"],
        },
    ),
    types.Tool(
        name="wc_root_clear",
        description="Remove the override working-copy root.",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="svn_test_connection",
        description="Check that a repository URL is reachable with the configured credentials.",
        inputSchema={
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "Repository URL (svn://, http(s)://, file://)",
                },
            },
            "required": ["url"],
        },
    ),
]


async def _handle_root_get(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle wc_root_get."""
    root = client.override_root
    text = f"Override root: {root}" if root else "No override root configured."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"override_root": root},
    )


async def _handle_root_set(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle wc_root_set."""
    root = args.get("root")
    if not root or not isinstance(root, str):
        raise ValueError("root is required")
    root = await run_sync(client.set_override_root, root)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=f"Override root set to {root}.")
        ],
        structuredContent={"override_root": root},
    )


async def _handle_root_clear(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle wc_root_clear."""
    await run_sync(client.clear_override_root)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="Override root cleared.")],
        structuredContent={"override_root": None},
    )


async def _handle_test_connection(
    client: SvnClient, args: dict
) -> types.CallToolResult:
    """Handle svn_test_connection."""
    url = args.get("url")
    if not url or not isinstance(url, str):
        raise ValueError("url is required")
    success, message = await run_sync_limited(client.test_connection, url)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=message)],
        structuredContent={"url": url, "success": success, "message": message},
        isError=not success,
    )


WORKING_COPY_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=WORKING_COPY_TOOLS[0],
        permissions=frozenset({WC_READ}),
        handler=_handle_root_get,
    ),
    ToolSpec(
        tool=WORKING_COPY_TOOLS[1],
        permissions=frozenset({WC_ADMIN}),
        handler=_handle_root_set,
    ),
    ToolSpec(
        tool=WORKING_COPY_TOOLS[2],
        permissions=frozenset({WC_ADMIN}),
        handler=_handle_root_clear,
    ),
    ToolSpec(
        tool=WORKING_COPY_TOOLS[3],
        permissions=frozenset({WC_READ}),
        handler=_handle_test_connection,
    ),
]
