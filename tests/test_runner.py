"""Tests for core/runner.py -- argv construction, environment and failures.

subprocess.run is patched throughout; no svn process is started.
"""

import subprocess
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from svn_wc_bridge.config import Config, EncodingSettings
from svn_wc_bridge.core.runner import (
    CommandOutcome,
    CommandRunner,
    Credentials,
    escape_target,
    mask_secrets,
)
from svn_wc_bridge.errors import NotInstalledError, ProcessError, ToolError


def _completed(stdout=b"", stderr=b"", returncode=0):
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestEscapeTarget:
    def test_plain_path_unchanged(self):
        assert escape_target("src/a.txt") == "src/a.txt"

    def test_at_sign_gets_trailing_at(self):
        assert escape_target("icons/logo@2x.png") == "icons/logo@2x.png@"

    def test_leading_dash_gets_dot_slash(self):
        assert escape_target("-rf.txt") == "./-rf.txt"
        assert escape_target("--force") == "./--force"

    def test_leading_dash_and_at_sign(self):
        assert escape_target("-v@2x.png") == "./-v@2x.png@"

    def test_dash_inside_path_unchanged(self):
        assert escape_target("src/-draft.txt") == "src/-draft.txt"


class TestMaskSecrets:
    def test_hides_password_value(self):
        rendered = mask_secrets(
            ["svn", "info", "--username", "bob", "--password", "hunter2"]
        )
        assert "hunter2" not in rendered
        assert "--password ***" in rendered
        assert "bob" in rendered


class TestCommandOutcome:
    def test_ok(self):
        outcome = CommandOutcome(("info",), "out", "", 0)
        assert outcome.ok
        outcome.raise_for_status()

    def test_stderr_raises_tool_error(self):
        outcome = CommandOutcome(("info",), "", "svn: E155007: nope", 1)
        with pytest.raises(ToolError, match="E155007"):
            outcome.raise_for_status()

    def test_empty_stderr_raises_process_error(self):
        outcome = CommandOutcome(("info",), "", "  ", 3)
        with pytest.raises(ProcessError) as exc_info:
            outcome.raise_for_status()
        assert exc_info.value.exit_code == 3


# ---------------------------------------------------------------------------
# Command construction
# ---------------------------------------------------------------------------


class TestBuildCommand:
    def test_always_non_interactive(self):
        runner = CommandRunner(Config())
        assert runner.build_command(["info", "a.txt"]) == [
            "svn",
            "info",
            "a.txt",
            "--non-interactive",
        ]

    def test_structured_output_adds_xml(self):
        argv = CommandRunner(Config()).build_command(
            ["status", "a.txt"], want_structured_output=True
        )
        assert "--xml" in argv

    def test_diff_gets_force_and_internal_diff(self):
        argv = CommandRunner(Config()).build_command(["diff", "a.txt"])
        assert "--force" in argv
        assert "--internal-diff" in argv

    def test_credentials_appended(self):
        argv = CommandRunner(Config()).build_command(
            ["update", "."], credentials=Credentials("bob", "pw")
        )
        assert argv[-4:] == ["--username", "bob", "--password", "pw"]

    def test_insecure_trusts_certificate(self):
        argv = CommandRunner(Config(insecure=True)).build_command(["info", "."])
        assert argv[-1] == "--trust-server-cert"

    def test_custom_binary(self):
        argv = CommandRunner(Config(svn_binary="/opt/svn")).build_command(["log"])
        assert argv[0] == "/opt/svn"

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            CommandRunner(Config()).build_command([])


class TestBuildEnvironment:
    def test_pins_locale_and_editor(self):
        env = CommandRunner(Config(locale="C.UTF-8")).build_environment()
        assert env["LC_ALL"] == "C.UTF-8"
        assert env["LANG"] == "C.UTF-8"
        assert env["LC_MESSAGES"] == "C.UTF-8"
        assert env["SVN_EDITOR"] == "echo"

    def test_locale_untouched_when_not_forced(self, monkeypatch):
        monkeypatch.setenv("LC_ALL", "de_DE.UTF-8")
        config = Config(
            locale="C.UTF-8",
            encoding=EncodingSettings(force_utf8_output=False),
        )
        env = CommandRunner(config).build_environment()
        assert env["LC_ALL"] == "de_DE.UTF-8"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class TestRun:
    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_success(self, mock_run, tmp_path):
        mock_run.return_value = _completed(stdout="M       a.txt\n".encode())
        runner = CommandRunner(Config())

        outcome = runner.run(["status", "a.txt"], str(tmp_path))

        assert outcome.ok
        assert outcome.stdout == "M       a.txt\n"
        assert outcome.raw_stdout == b"M       a.txt\n"
        assert outcome.command == ("status", "a.txt", "--non-interactive")
        kwargs = mock_run.call_args[1]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["timeout"] == 30.0

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_failure_is_returned_not_raised(self, mock_run, tmp_path):
        mock_run.return_value = _completed(
            stderr=b"svn: E155007: not a working copy", returncode=1
        )
        outcome = CommandRunner(Config()).run(["info", "."], str(tmp_path))
        assert not outcome.ok
        assert "E155007" in outcome.stderr

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_missing_executable(self, mock_run, tmp_path):
        mock_run.side_effect = FileNotFoundError()
        with pytest.raises(NotInstalledError):
            CommandRunner(Config()).run(["info", "."], str(tmp_path))

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_timeout(self, mock_run, tmp_path):
        mock_run.side_effect = subprocess.TimeoutExpired(["svn"], 5)
        with pytest.raises(ProcessError) as exc_info:
            CommandRunner(Config()).run(["update", "."], str(tmp_path))
        assert exc_info.value.timed_out

    @patch("svn_wc_bridge.core.runner.MAX_OUTPUT_BYTES", 16)
    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_output_ceiling(self, mock_run, tmp_path):
        mock_run.return_value = _completed(stdout=b"x" * 17)
        with pytest.raises(ProcessError, match="exceeded"):
            CommandRunner(Config()).run(["log", "."], str(tmp_path))

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_missing_working_directory(self, mock_run, tmp_path):
        with pytest.raises(ProcessError, match="does not exist"):
            CommandRunner(Config()).run(["info", "."], str(tmp_path / "gone"))
        mock_run.assert_not_called()

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_check_returns_stdout(self, mock_run, tmp_path):
        mock_run.return_value = _completed(stdout=b"r12\n")
        assert CommandRunner(Config()).check(["log"], str(tmp_path)) == "r12\n"

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_check_raises(self, mock_run, tmp_path):
        mock_run.return_value = _completed(stderr=b"svn: E1: bad", returncode=1)
        with pytest.raises(ToolError):
            CommandRunner(Config()).check(["log"], str(tmp_path))


class TestIsInstalled:
    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_installed(self, mock_run):
        mock_run.return_value = _completed(stdout=b"1.14.2\n")
        assert CommandRunner(Config()).is_installed()
        assert mock_run.call_args[0][0] == ["svn", "--version", "--quiet"]

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_not_installed(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        assert not CommandRunner(Config()).is_installed()

    @patch("svn_wc_bridge.core.runner.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = _completed(returncode=1)
        config = replace(Config(), svn_binary="svn-broken")
        assert not CommandRunner(config).is_installed()
