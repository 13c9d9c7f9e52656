"""
Tests for configuration parsing (goreinstall/config.py).
"""

import pytest
from unittest.mock import patch

from goreinstall.config import (
    MAX_WORKERS_LIMIT,
    Config,
    Preferences,
    _load_yaml,
    load_config,
    load_config_file,
)


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


class TestPreferences:
    """Tests for Preferences dataclass."""

    def test_defaults(self):
        prefs = Preferences()
        assert 1 <= prefs.max_workers <= MAX_WORKERS_LIMIT
        assert prefs.go_command == "go"
        assert prefs.read_timeout_seconds == 0
        assert prefs.lookup_timeout_seconds == 10
        assert prefs.proxy == ""

    @pytest.mark.parametrize("kwargs", [
        {"max_workers": 0},
        {"max_workers": MAX_WORKERS_LIMIT + 1},
        {"go_command": ""},
        {"read_timeout_seconds": -1},
        {"lookup_timeout_seconds": 0},
        {"lookup_timeout_seconds": 301},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            Preferences(**kwargs)

    def test_from_dict(self):
        prefs = Preferences.from_dict({"max_workers": 3, "proxy": None})
        assert prefs.max_workers == 3
        assert prefs.proxy == ""


class TestConfig:
    """Tests for Config dataclass."""

    def test_unsupported_version(self):
        with pytest.raises(ValueError, match="Unsupported config version"):
            Config(version=2)

    def test_from_dict(self):
        config = Config.from_dict({"version": 1, "preferences": {"go_command": "go1.22"}}, source="x.yml")
        assert config.preferences.go_command == "go1.22"
        assert config.source == "x.yml"

    def test_merge_prefers_explicit_keys(self):
        """Test only keys set in the higher priority file override."""
        high = Config(preferences=Preferences(max_workers=2, proxy="https://high"))
        low = Config(preferences=Preferences(max_workers=8, go_command="go1.21"))

        merged = high.merge_with(low, frozenset({"proxy"}))

        assert merged.preferences.proxy == "https://high"
        assert merged.preferences.max_workers == 8
        assert merged.preferences.go_command == "go1.21"


class TestLoadConfigFile:
    """Tests for loading single files."""

    def test_valid_file(self, tmp_path):
        path = write(tmp_path, "c.yml", "version: 1\npreferences:\n  max_workers: 4\n")
        config = load_config_file(path)
        assert config.preferences.max_workers == 4
        assert config.source == path

    def test_missing_file(self, tmp_path):
        assert load_config_file(str(tmp_path / "nope.yml")) is None

    def test_invalid_yaml(self, tmp_path):
        path = write(tmp_path, "c.yml", "preferences: [unclosed\n")
        assert _load_yaml(path) is None
        assert load_config_file(path) is None

    def test_invalid_values(self, tmp_path):
        path = write(tmp_path, "c.yml", "version: 1\npreferences:\n  max_workers: 0\n")
        assert load_config_file(path) is None

    def test_empty_file(self, tmp_path):
        path = write(tmp_path, "c.yml", "")
        assert load_config_file(path) == Config(source=path)


class TestLoadConfig:
    """Tests for merged configuration loading."""

    @patch("goreinstall.config.CONFIG_LOCATIONS", [])
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("GOREINSTALL_MAX_WORKERS", raising=False)
        assert load_config() == Config()

    def test_custom_path_wins(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GOREINSTALL_MAX_WORKERS", raising=False)
        project = write(tmp_path, "project.yml", "preferences:\n  max_workers: 8\n  proxy: https://project\n")
        custom = write(tmp_path, "custom.yml", "preferences:\n  max_workers: 2\n")

        with patch("goreinstall.config.CONFIG_LOCATIONS", [project]):
            config = load_config(custom)

        assert config.preferences.max_workers == 2
        assert config.preferences.proxy == "https://project"
        assert config.source == custom

    def test_custom_path_unloadable(self, tmp_path):
        with pytest.raises(ValueError, match="Could not load config"):
            load_config(str(tmp_path / "missing.yml"))

    @patch("goreinstall.config.CONFIG_LOCATIONS", [])
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("GOREINSTALL_MAX_WORKERS", "5")
        assert load_config().preferences.max_workers == 5

    @patch("goreinstall.config.CONFIG_LOCATIONS", [])
    def test_env_override_invalid_ignored(self, monkeypatch):
        monkeypatch.setenv("GOREINSTALL_MAX_WORKERS", "lots")
        assert load_config().preferences.max_workers == Preferences().max_workers
