"""Tests for mcp/tools/errors.py -- error responses and argument helpers."""

import mcp.types as types
import pytest

from svn_wc_bridge.errors import (
    DiffCancelledError,
    NotInstalledError,
    NotInWorkingCopyError,
    OutOfDateError,
    ProcessError,
    ReconciliationError,
    SvnBridgeError,
    ToolError,
)
from svn_wc_bridge.mcp.tools.errors import (
    build_error_response,
    require_path,
    translate_svn_error,
)


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestBuildErrorResponse:
    def test_format(self):
        result = build_error_response("out_of_date", "stale", "Run svn_update")
        assert result.isError is True
        assert _text(result) == "Error (out_of_date): stale\n\nAction: Run svn_update"


class TestTranslateSvnError:
    @pytest.mark.parametrize(
        "error,error_type",
        [
            (NotInstalledError("svn"), "not_installed"),
            (NotInWorkingCopyError("/x"), "not_in_working_copy"),
            (OutOfDateError("svn: E155011: out of date"), "out_of_date"),
            (ToolError("svn: E170001: Authorization failed"), "authentication_failed"),
            (ToolError("svn: E170013: Unable to connect"), "connection_error"),
            (ToolError("svn: E155010: The node was not found"), "not_found"),
            (ToolError("svn: E165001: hook refused"), "svn_error"),
            (ProcessError(["update"], None, timed_out=True), "timeout"),
            (ProcessError(["update"], 2), "process_error"),
            (ReconciliationError("/x", ["native diff: boom"]), "diff_failed"),
            (DiffCancelledError("stop"), "cancelled"),
            (SvnBridgeError("odd"), "server_error"),
        ],
    )
    def test_error_types(self, error, error_type):
        result = translate_svn_error(error)
        assert result.isError
        assert _text(result).startswith(f"Error ({error_type}):")

    def test_tool_error_text_is_verbatim(self):
        stderr = "svn: E165001: Commit blocked by pre-commit hook (exit code 1)"
        assert stderr in _text(translate_svn_error(ToolError(stderr)))

    def test_reconciliation_lists_stages(self):
        error = ReconciliationError(
            "/x", ["native diff: boom", "repository content: gone"]
        )
        text = _text(translate_svn_error(error))
        assert "native diff: boom" in text
        assert "repository content: gone" in text


class TestRequirePath:
    def test_valid(self, tmp_path):
        assert require_path({"path": str(tmp_path)}) == str(tmp_path)

    def test_missing_key(self):
        with pytest.raises(ValueError, match="path is required"):
            require_path({})

    def test_custom_key(self, tmp_path):
        assert require_path({"base_path": str(tmp_path)}, key="base_path") == str(tmp_path)

    def test_relative_rejected(self):
        with pytest.raises(ValueError, match="absolute"):
            require_path({"path": "a.txt"}, must_exist=False)

    def test_missing_file_allowed(self, tmp_path):
        target = str(tmp_path / "deleted.txt")
        assert require_path({"path": target}, must_exist=False) == target

    def test_expands_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert require_path({"path": "~"}) == str(tmp_path)
