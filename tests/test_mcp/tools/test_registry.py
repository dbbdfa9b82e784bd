"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolRegistry filtering by WC_READ / WC_WRITE / WC_ADMIN
- call_tool dispatch and error translation
- load_permissions_file parsing and validation
- The shipped tool set and its permission assignments
"""

import asyncio
import unittest
from unittest.mock import MagicMock

import mcp.types as types

from svn_wc_bridge.errors import NotInWorkingCopyError, OutOfDateError
from svn_wc_bridge.mcp.tools import ALL_SPECS
from svn_wc_bridge.mcp.tools.registry import (
    WC_ADMIN,
    WC_READ,
    WC_WRITE,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)


def _make_spec(
    name: str,
    permissions: frozenset[str] | None = None,
    handler=None,
) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if permissions is None:
        permissions = frozenset()
    if handler is None:

        async def handler(client, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=permissions,
        handler=handler,
    )


def _raising(exc):
    async def handler(client, args):
        raise exc

    return handler


class TestToolRegistry(unittest.TestCase):
    def setUp(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("svn_status", frozenset({WC_READ})),
            _make_spec("svn_commit", frozenset({WC_WRITE})),
            _make_spec("wc_root_set", frozenset({WC_ADMIN})),
        ]

    def test_no_filter_all_tools_registered(self):
        self.assertEqual(ToolRegistry(self.specs).tool_count(), 4)

    def test_read_only_filter(self):
        registry = ToolRegistry(self.specs, frozenset({WC_READ}))
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "svn_status"])

    def test_call_tool_dispatches(self):
        client = MagicMock()
        result = asyncio.run(
            ToolRegistry(self.specs).call_tool("svn_status", None, client)
        )
        self.assertEqual(result.content[0].text, "ok:svn_status")

    def test_unknown_tool_raises(self):
        with self.assertRaises(ValueError):
            asyncio.run(ToolRegistry(self.specs).call_tool("nope", {}, MagicMock()))

    def test_filtered_tool_is_unknown(self):
        registry = ToolRegistry(self.specs, frozenset({WC_READ}))
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("svn_commit", {}, MagicMock()))

    def test_svn_error_translated(self):
        spec = _make_spec(
            "svn_commit", handler=_raising(OutOfDateError("svn: E155011: out of date"))
        )
        result = asyncio.run(
            ToolRegistry([spec]).call_tool("svn_commit", {}, MagicMock())
        )
        self.assertTrue(result.isError)
        self.assertIn("Error (out_of_date)", result.content[0].text)

    def test_not_in_working_copy_translated(self):
        spec = _make_spec(
            "svn_status", handler=_raising(NotInWorkingCopyError("/x"))
        )
        result = asyncio.run(
            ToolRegistry([spec]).call_tool("svn_status", {}, MagicMock())
        )
        self.assertIn("Error (not_in_working_copy)", result.content[0].text)
        self.assertIn("wc_root_set", result.content[0].text)

    def test_value_error_is_validation_error(self):
        spec = _make_spec("svn_log", handler=_raising(ValueError("path is required")))
        result = asyncio.run(
            ToolRegistry([spec]).call_tool("svn_log", {}, MagicMock())
        )
        self.assertIn("Error (validation_error): path is required", result.content[0].text)

    def test_unexpected_error_is_server_error(self):
        spec = _make_spec("svn_log", handler=_raising(RuntimeError("kaboom")))
        result = asyncio.run(
            ToolRegistry([spec]).call_tool("svn_log", {}, MagicMock())
        )
        self.assertIn("Error (server_error): kaboom", result.content[0].text)


class TestLoadPermissionsFile:
    def test_parses_with_comments(self, tmp_path):
        path = tmp_path / "read-only.permissions"
        path.write_text("# read only\n\nWC_READ\n")
        assert load_permissions_file(path) == frozenset({WC_READ})

    def test_unknown_permission(self, tmp_path):
        path = tmp_path / "bad.permissions"
        path.write_text("WC_READ\nTICKET_VIEW\n")
        try:
            load_permissions_file(path)
        except ValueError as e:
            assert "line 2" in str(e)
        else:
            raise AssertionError("expected ValueError")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.permissions"
        path.write_text("# nothing\n")
        try:
            load_permissions_file(path)
        except ValueError as e:
            assert "No permissions" in str(e)
        else:
            raise AssertionError("expected ValueError")


class TestShippedTools:
    def test_names_unique(self):
        names = [spec.tool.name for spec in ALL_SPECS]
        assert len(names) == len(set(names))

    def test_expected_tools(self):
        names = {spec.tool.name for spec in ALL_SPECS}
        assert names == {
            "svn_status",
            "svn_status_many",
            "svn_has_changes",
            "svn_log",
            "svn_info",
            "svn_diff",
            "svn_add",
            "svn_remove",
            "svn_commit",
            "svn_update",
            "svn_revert",
            "svn_checkout",
            "wc_root_get",
            "wc_root_set",
            "wc_root_clear",
            "svn_test_connection",
        }

    def test_read_only_set_has_no_writes(self):
        registry = ToolRegistry(ALL_SPECS, frozenset({WC_READ}))
        names = {tool.name for tool in registry.list_tools()}
        assert "svn_diff" in names
        assert "svn_commit" not in names
        assert "wc_root_set" not in names
