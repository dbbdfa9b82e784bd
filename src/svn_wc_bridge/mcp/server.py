"""MCP Server exposing Subversion working-copy operations over stdio.

This module implements the Model Context Protocol server that lets AI
agents query status, reconcile diffs and commit changes in svn working
copies.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..config_loader import ensure_config
from ..core.client import SvnClient
from ..logger import setup_logging
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("svn-wc-bridge")

# Global client instance (initialized in lifespan)
_svn_client: SvnClient | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(client: SvnClient, args: dict) -> types.CallToolResult:
    """Handle ping tool -- check that svn can still be run."""
    installed = await run_sync(client.is_installed)
    if not installed:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"svn executable '{client.config.svn_binary}' could not be run.",
                )
            ],
            isError=True,
        )
    root = client.override_root or "none"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"SVN working-copy bridge {__version__} ready. Override root: {root}",
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check that the server is running and svn is available",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_client() -> SvnClient:
    """Get the global SvnClient instance.

    Raises:
        RuntimeError: If client is not initialized
    """
    if _svn_client is None:
        raise RuntimeError(
            "SvnClient not initialized. Server lifespan not started."
        )
    return _svn_client


def set_client(client: SvnClient | None) -> None:
    global _svn_client
    _svn_client = client


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List all registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    client = get_client()
    try:
        return await get_registry().call_tool(name, arguments, client)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only, never stdout, so the JSON-RPC stream stays
    clean.

    Args:
        config_overrides: Optional dict with config values to override
            (binary, locale, username, password, insecure, override_root,
            log_file, permissions_file)
    """
    log_file = (
        config_overrides.get("log_file") if config_overrides else None
    )

    # Must run BEFORE stdio_server to keep stdout clean during negotiation
    setup_logging(mode="mcp", log_file=log_file)

    permissions_file = (
        config_overrides.get("permissions_file")
        if config_overrides
        else None
    )
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )

    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )

    set_registry(registry)

    # set_client() is called here rather than in the lifespan so that running
    # this file as __main__ updates the same module globals the handlers read.
    async with server_lifespan(
        config_overrides=config_overrides
    ) as ctx:
        set_client(ctx["client"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="svn-wc-bridge",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_client(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="SVN Working-Copy Bridge - MCP server for Subversion working copies",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or config.yaml)
  svn-wc-bridge

  # Use a specific svn build
  svn-wc-bridge --svn-binary /opt/subversion/bin/svn

  # Files live below a checkout whose root is several levels up
  svn-wc-bridge --override-root ~/work/trunk

  # Read-only tool set
  svn-wc-bridge --permissions-file /etc/svn-wc-bridge/read-only.permissions

  # Write a starter .svn_bridge/config.yml
  svn-wc-bridge --init-config

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--svn-binary",
        help="svn executable to run (takes precedence over SVN_BRIDGE_SVN_BINARY and config files)",
    )
    parser.add_argument(
        "--locale",
        help="Locale pinned for svn output (default: en_US.UTF-8)",
    )
    parser.add_argument(
        "--username",
        help="svn username used when a command fails authentication",
    )
    parser.add_argument(
        "--password",
        help="svn password used when a command fails authentication"
        " (visible in process list -- prefer SVN_BRIDGE_PASSWORD env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Trust unverified server certificates (use only for development)",
    )
    parser.add_argument(
        "--override-root",
        help="Working-copy root used when a path's own directory is not a working copy",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/svn-wc-bridge.log",
        help="Log file path (default: /tmp/svn-wc-bridge.log)",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (WC_READ, WC_WRITE, WC_ADMIN), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config file (if none exists), print its path and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"svn-wc-bridge version {__version__}",
    )

    args = parser.parse_args()

    if args.init_config:
        config_path = ensure_config()
        print(f"Config file: {config_path}", file=sys.stderr)
        return

    config_overrides = {}
    if args.svn_binary:
        config_overrides["binary"] = args.svn_binary
    if args.locale:
        config_overrides["locale"] = args.locale
    if args.username:
        config_overrides["username"] = args.username
    if args.password:
        config_overrides["password"] = args.password
    if args.insecure:
        config_overrides["insecure"] = True
    if args.override_root:
        config_overrides["override_root"] = args.override_root
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    if config_overrides:
        override_keys = [
            k for k in config_overrides.keys() if k != "password"
        ]
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(
            main(
                config_overrides=config_overrides
                if config_overrides
                else None
            )
        )
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
