"""Tests for config_loader.py -- discovery, !include, interpolation and merge."""

import pytest

from svn_wc_bridge.config_loader import (
    CONFIG_ENV_VAR,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    load_yaml_file,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with an empty CWD and HOME under tmp_path."""
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(project)
    return tmp_path


class TestInterpolation:
    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("SVN_USER", "alice")
        assert interpolate_env_vars("${SVN_USER}") == "alice"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("SVN_USER", raising=False)
        assert interpolate_env_vars("${SVN_USER:-guest}") == "guest"

    def test_unset_without_default(self, monkeypatch):
        monkeypatch.delenv("SVN_USER", raising=False)
        assert interpolate_env_vars("u=${SVN_USER}") == "u="

    def test_unclosed_left_alone(self):
        assert interpolate_env_vars("${OPEN") == "${OPEN"


class TestIncludes:
    def test_include(self, tmp_path):
        (tmp_path / "enc.yml").write_text("encoding_fallbacks: [big5]\n")
        main = tmp_path / "config.yml"
        main.write_text("encoding: !include enc.yml\n")
        assert load_yaml_file(main) == {"encoding": {"encoding_fallbacks": ["big5"]}}

    def test_circular_include(self, tmp_path):
        (tmp_path / "a.yml").write_text("x: !include b.yml\n")
        (tmp_path / "b.yml").write_text("y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(tmp_path / "a.yml")

    def test_missing_include(self, tmp_path):
        (tmp_path / "a.yml").write_text("x: !include nope.yml\n")
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "a.yml")


class TestDiscovery:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []
        assert load_hierarchical_config() == {}

    def test_project_config(self, isolated):
        target = isolated / "project" / ".svn_bridge" / "config.yml"
        target.parent.mkdir()
        target.write_text("svn:\n  binary: /opt/svn\n")
        assert discover_config_files() == [target]
        assert load_hierarchical_config() == {"svn": {"binary": "/opt/svn"}}

    def test_env_var_config_wins(self, isolated, monkeypatch):
        explicit = isolated / "explicit.yml"
        explicit.write_text("svn:\n  binary: /explicit/svn\n")
        project = isolated / "project" / ".svn_bridge" / "config.yml"
        project.parent.mkdir()
        project.write_text(
            "svn:\n  binary: /project/svn\nlogging:\n  level: DEBUG\n"
        )
        monkeypatch.setenv(CONFIG_ENV_VAR, str(explicit))

        merged = load_hierarchical_config()

        assert merged["svn"] == {"binary": "/explicit/svn"}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("SVN_USER", "alice")
        target = isolated / "project" / ".svn_bridge" / "config.yml"
        target.parent.mkdir()
        target.write_text("svn:\n  username: ${SVN_USER}\n")
        assert load_hierarchical_config()["svn"]["username"] == "alice"


class TestEnsureConfig:
    def test_creates_starter(self, isolated):
        path = ensure_config()
        assert path == isolated / "project" / ".svn_bridge" / "config.yml"
        assert "svn-wc-bridge configuration" in path.read_text()

    def test_existing_is_kept(self, isolated):
        target = isolated / "project" / ".svn_bridge" / "config.yml"
        target.parent.mkdir()
        target.write_text("svn: {}\n")
        assert ensure_config() == target
        assert target.read_text() == "svn: {}\n"
