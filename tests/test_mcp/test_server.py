"""Tests for the MCP server module: ping, global accessors and dispatch."""

from unittest.mock import MagicMock, patch

import mcp.types as types
import pytest

from svn_wc_bridge import __version__
from svn_wc_bridge.mcp import server as server_module
from svn_wc_bridge.mcp.server import (
    PING_SPEC,
    _handle_ping,
    get_client,
    get_registry,
    handle_call_tool,
    handle_list_tools,
    set_client,
    set_registry,
)
from svn_wc_bridge.mcp.tools import ALL_SPECS, ToolRegistry
from svn_wc_bridge.mcp.tools.registry import WC_READ


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


@pytest.fixture
def installed_globals(mock_svn_client):
    """Install a client and a full registry, then reset the globals."""
    mock_svn_client.override_root = None
    set_client(mock_svn_client)
    set_registry(ToolRegistry([PING_SPEC] + ALL_SPECS))
    yield mock_svn_client
    set_client(None)
    set_registry(None)


class TestPing:
    async def test_ping_ready(self, mock_svn_client):
        mock_svn_client.is_installed.return_value = True
        mock_svn_client.override_root = "/home/me/wc"

        result = await _handle_ping(mock_svn_client, {})

        assert not result.isError
        assert _text(result) == (
            f"SVN working-copy bridge {__version__} ready. "
            "Override root: /home/me/wc"
        )

    async def test_ping_without_override_root(self, mock_svn_client):
        mock_svn_client.is_installed.return_value = True
        mock_svn_client.override_root = None
        result = await _handle_ping(mock_svn_client, {})
        assert _text(result).endswith("Override root: none")

    async def test_ping_svn_missing(self, mock_svn_client):
        mock_svn_client.is_installed.return_value = False
        result = await _handle_ping(mock_svn_client, {})
        assert result.isError
        assert "svn executable 'svn' could not be run." == _text(result)

    def test_ping_needs_no_permission(self):
        assert PING_SPEC.permissions == frozenset()
        registry = ToolRegistry([PING_SPEC] + ALL_SPECS, frozenset({WC_READ}))
        assert "ping" in {tool.name for tool in registry.list_tools()}


class TestGlobals:
    def test_get_client_uninitialized(self):
        set_client(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_client()

    def test_get_registry_uninitialized(self):
        set_registry(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_registry()

    def test_set_and_get(self):
        client = MagicMock()
        set_client(client)
        try:
            assert get_client() is client
        finally:
            set_client(None)


class TestDispatch:
    async def test_list_tools(self, installed_globals):
        names = [tool.name for tool in await handle_list_tools()]
        assert names[0] == "ping"
        assert len(names) == len(ALL_SPECS) + 1

    async def test_unknown_tool(self, installed_globals):
        result = await handle_call_tool("svn_blame", {})
        assert result.isError
        assert _text(result).startswith("Error (unknown_tool):")

    async def test_call_dispatches_to_handler(self, installed_globals, tmp_path):
        installed_globals.has_changes.return_value = True
        path = str(tmp_path / "a.txt")

        result = await handle_call_tool("svn_has_changes", {"path": path})

        assert _text(result) == f"{path} has changes."

    async def test_validation_error_surfaces(self, installed_globals):
        result = await handle_call_tool("svn_diff", {"path": "relative.txt"})
        assert result.isError
        assert "Error (validation_error)" in _text(result)


class TestRun:
    def test_cli_overrides_passed_to_main(self, monkeypatch):
        monkeypatch.setattr(
            "sys.argv",
            [
                "svn-wc-bridge",
                "--svn-binary",
                "/opt/svn/bin/svn",
                "--override-root",
                "/home/me/wc",
                "--insecure",
            ],
        )
        captured = {}

        async def fake_main(config_overrides=None):
            captured.update(config_overrides or {})

        with patch.object(server_module, "main", fake_main):
            server_module.run()

        assert captured["binary"] == "/opt/svn/bin/svn"
        assert captured["override_root"] == "/home/me/wc"
        assert captured["insecure"] is True
        assert captured["log_file"] == "/tmp/svn-wc-bridge.log"

    def test_runtime_error_exits_1(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["svn-wc-bridge"])

        async def failing_main(config_overrides=None):
            raise RuntimeError("svn executable 'svn' not found.")

        with (
            patch.object(server_module, "main", failing_main),
            pytest.raises(SystemExit) as exc_info,
        ):
            server_module.run()

        assert exc_info.value.code == 1

    def test_init_config_writes_starter_and_exits(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["svn-wc-bridge", "--init-config"])
        main_mock = MagicMock()

        with (
            patch.object(
                server_module, "ensure_config", return_value="/wc/.svn_bridge/config.yml"
            ) as ensure_mock,
            patch.object(server_module, "main", main_mock),
        ):
            server_module.run()

        ensure_mock.assert_called_once_with()
        main_mock.assert_not_called()
        assert "Config file: /wc/.svn_bridge/config.yml" in capsys.readouterr().err

    def test_init_config_creates_file(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("sys.argv", ["svn-wc-bridge", "--init-config"])
        monkeypatch.setattr(
            "svn_wc_bridge.config_loader.discover_config_files", lambda: []
        )

        server_module.run()

        assert (tmp_path / ".svn_bridge" / "config.yml").is_file()
        assert "config.yml" in capsys.readouterr().err
