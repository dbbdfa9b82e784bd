"""Shared pytest fixtures for svn-wc-bridge tests."""

from unittest.mock import MagicMock

import pytest

from svn_wc_bridge.config import Config
from svn_wc_bridge.core.runner import CommandOutcome


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a real svn executable",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a real svn executable"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config(tmp_path):
    """Config whose persisted state lives under tmp_path."""
    return Config(state_dir=str(tmp_path / "state"), timeout=5.0)


@pytest.fixture
def make_outcome():
    """Factory fixture for CommandOutcome values."""

    def _make(
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        raw_stdout: bytes | None = None,
        command: tuple[str, ...] = ("info",),
    ) -> CommandOutcome:
        return CommandOutcome(
            command=command,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            raw_stdout=stdout.encode("utf-8") if raw_stdout is None else raw_stdout,
        )

    return _make


@pytest.fixture
def mock_svn_client(mock_config):
    """Create a mock SvnClient instance for handler tests."""
    from svn_wc_bridge.core.client import SvnClient

    client = MagicMock(spec=SvnClient)
    client.config = mock_config
    return client
