"""
Configuration file parsing and management.

Loads YAML configuration files and merges them by precedence
(custom path -> project -> user -> system -> defaults).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

import yaml

from .common import vlog


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".goreinstall.yml",                                     # Project (highest priority)
    ".goreinstall.yaml",
    os.path.expanduser("~/.config/goreinstall/config.yml"),  # User global
    os.path.expanduser("~/.config/goreinstall/config.yaml"),
    "/etc/goreinstall/config.yml",                          # System global
    "/etc/goreinstall/config.yaml",
]

MAX_WORKERS_LIMIT = 64


def default_max_workers() -> int:
    """One worker per CPU, capped at MAX_WORKERS_LIMIT."""
    return min(MAX_WORKERS_LIMIT, os.cpu_count() or 4)


@dataclass(frozen=True)
class Preferences:
    """
    Preferences for batch operations.

    Attributes:
        max_workers: Maximum number of binaries processed at once
        go_command: Go executable used for `go env` and `go install`
        read_timeout_seconds: Per-binary build info read deadline (0 disables it)
        lookup_timeout_seconds: Module proxy request timeout
        proxy: Module proxy URL (empty uses $GOPROXY or proxy.golang.org)
    """
    max_workers: int = field(default_factory=default_max_workers)
    go_command: str = "go"
    read_timeout_seconds: float = 0
    lookup_timeout_seconds: float = 10
    proxy: str = ""

    def __post_init__(self):
        """Validate preferences after initialization."""
        if self.max_workers < 1 or self.max_workers > MAX_WORKERS_LIMIT:
            raise ValueError(
                f"Invalid max_workers: {self.max_workers}. "
                f"Must be between 1 and {MAX_WORKERS_LIMIT}"
            )

        if not self.go_command:
            raise ValueError("Invalid go_command: must not be empty")

        if self.read_timeout_seconds < 0:
            raise ValueError(
                f"Invalid read_timeout_seconds: {self.read_timeout_seconds}. "
                "Must be 0 (disabled) or positive"
            )

        if self.lookup_timeout_seconds <= 0 or self.lookup_timeout_seconds > 300:
            raise ValueError(
                f"Invalid lookup_timeout_seconds: {self.lookup_timeout_seconds}. "
                "Must be between 0 and 300"
            )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Preferences:
        """Create Preferences from dictionary."""
        return Preferences(
            max_workers=data.get("max_workers", default_max_workers()),
            go_command=data.get("go_command", "go"),
            read_timeout_seconds=data.get("read_timeout_seconds", 0),
            lookup_timeout_seconds=data.get("lookup_timeout_seconds", 10),
            proxy=data.get("proxy", "") or "",
        )


@dataclass(frozen=True)
class Config:
    """
    Complete goreinstall configuration.

    Attributes:
        version: Config schema version
        preferences: Global preferences
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    preferences: Preferences = field(default_factory=Preferences)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        preferences_data = data.get("preferences", {}) or {}
        return Config(
            version=data.get("version", 1),
            preferences=Preferences.from_dict(preferences_data),
            source=source,
        )

    def merge_with(self, other: Config, explicit_keys: frozenset[str] = frozenset()) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)
            explicit_keys: Preference keys this config set explicitly; other
                keys are taken from the lower priority config

        Returns:
            New merged Config object
        """
        values = {}
        for key in ("max_workers", "go_command", "read_timeout_seconds", "lookup_timeout_seconds", "proxy"):
            source = self.preferences if key in explicit_keys else other.preferences
            values[key] = getattr(source, key)

        return Config(
            version=self.version,
            preferences=Preferences(**values),
            source=self.source or other.source,
        )


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def _explicit_keys(data: dict[str, Any]) -> frozenset[str]:
    preferences = data.get("preferences", {}) or {}
    return frozenset(preferences.keys()) if isinstance(preferences, dict) else frozenset()


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Load configuration from a single file.

    Args:
        file_path: Path to configuration file
        verbose: Enable verbose logging

    Returns:
        Config object, or None if file cannot be loaded
    """
    loaded = _load_config_file(file_path, verbose)
    return loaded[0] if loaded else None


def _load_config_file(file_path: str, verbose: bool) -> tuple[Config, frozenset[str]] | None:
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    data = _load_yaml(file_path)
    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return None

    try:
        config = Config.from_dict(data, source=file_path)
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return None

    vlog(f"Loaded config successfully: {file_path}", verbose)
    return config, _explicit_keys(data)


def _apply_env_overrides(config: Config, verbose: bool) -> Config:
    max_workers = os.environ.get("GOREINSTALL_MAX_WORKERS")
    if not max_workers:
        return config
    try:
        preferences = replace(config.preferences, max_workers=int(max_workers))
    except ValueError as e:
        vlog(f"Ignoring GOREINSTALL_MAX_WORKERS={max_workers!r}: {e}", verbose)
        return config
    return replace(config, preferences=preferences)


def load_config(
    custom_path: str | None = None,
    verbose: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Custom path (if provided)
    2. Project .goreinstall.yml
    3. User ~/.config/goreinstall/config.yml
    4. System /etc/goreinstall/config.yml
    5. Default configuration

    GOREINSTALL_MAX_WORKERS overrides max_workers from any source.

    Args:
        custom_path: Optional path to custom configuration file
        verbose: Enable verbose logging

    Returns:
        Merged Config object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded
    """
    loaded: list[tuple[Config, frozenset[str]]] = []

    if custom_path:
        result = _load_config_file(custom_path, verbose)
        if result is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        loaded.append(result)
        vlog(f"Using custom config: {custom_path}", verbose)

    for location in CONFIG_LOCATIONS:
        result = _load_config_file(location, verbose)
        if result is not None:
            loaded.append(result)
            vlog(f"Found config at: {location}", verbose)

    if not loaded:
        vlog("No config files found, using defaults", verbose)
        return _apply_env_overrides(Config(), verbose)

    # Fold from lowest priority upward so higher priority keys win
    merged = Config()
    for config, keys in reversed(loaded):
        merged = config.merge_with(merged, keys)

    vlog(f"Merged {len(loaded)} config files", verbose)
    return _apply_env_overrides(merged, verbose)
