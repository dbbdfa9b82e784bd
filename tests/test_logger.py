"""Tests for logger.py -- setup_logging() and JsonFormatter.

Strategy: mock logging.basicConfig to inspect the handlers and level that
setup_logging passes, since pytest's log capture interferes with real
basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from svn_wc_bridge.logger import JsonFormatter, setup_logging


class TestSetupLogging:
    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic, monkeypatch):
        monkeypatch.delenv("SVN_BRIDGE_LOG_LEVEL", raising=False)
        setup_logging(mode="cli")

        kwargs = mock_basic.call_args.kwargs
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr
        assert kwargs["level"] == logging.INFO

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_mcp_mode_logs_to_file(self, mock_basic, tmp_path, monkeypatch):
        monkeypatch.delenv("SVN_BRIDGE_LOG_LEVEL", raising=False)
        log_file = tmp_path / "bridge.log"
        setup_logging(mode="mcp", log_file=str(log_file))

        kwargs = mock_basic.call_args.kwargs
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert handlers[0].baseFilename == str(log_file)
        assert kwargs["level"] == logging.WARNING
        handlers[0].close()

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_mcp_mode_env_log_file(self, mock_basic, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("SVN_BRIDGE_LOG_FILE", str(log_file))
        setup_logging(mode="mcp")

        handler = mock_basic.call_args.kwargs["handlers"][0]
        assert handler.baseFilename == str(log_file)
        handler.close()

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_debug_overrides_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("SVN_BRIDGE_LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_env_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("SVN_BRIDGE_LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert mock_basic.call_args.kwargs["level"] == logging.ERROR

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_config_level_used_without_env(
        self, mock_basic, tmp_path, monkeypatch
    ):
        monkeypatch.delenv("SVN_BRIDGE_LOG_LEVEL", raising=False)
        setup_logging(mode="mcp", level="DEBUG", log_file=str(tmp_path / "x.log"))
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG
        mock_basic.call_args.kwargs["handlers"][0].close()

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_cli_log_file_mirrors(self, mock_basic, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))
        handlers = mock_basic.call_args.kwargs["handlers"]
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        handlers[1].close()

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_json_format(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        handler = mock_basic.call_args.kwargs["handlers"][0]
        assert isinstance(handler.formatter, JsonFormatter)

    @patch("svn_wc_bridge.logger.logging.basicConfig")
    def test_charset_normalizer_quietened(self, mock_basic, monkeypatch):
        monkeypatch.delenv("SVN_BRIDGE_LOG_LEVEL", raising=False)
        setup_logging(mode="cli")
        assert (
            logging.getLogger("charset_normalizer").level == logging.WARNING
        )


class TestJsonFormatter:
    def test_fields(self):
        record = logging.LogRecord(
            "svn_wc_bridge.core.diff", logging.INFO, __file__, 1,
            "diff for %s", ("a.txt",), None,
        )
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "svn_wc_bridge.core.diff"
        assert entry["msg"] == "diff for a.txt"
        assert "exc" not in entry

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exc"]
