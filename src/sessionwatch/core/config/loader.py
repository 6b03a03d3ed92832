"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import SessionwatchConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per process
_config_cache: SessionwatchConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/sessionwatch/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "sessionwatch" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .sessionwatch.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".sessionwatch.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 30}})
        {'a': 1, 'b': {'x': 10, 'y': 30}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    result[section] = {**result.get(section, {}), key: value}


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        SESSIONWATCH_URL - overrides server.base_url
        SESSIONWATCH_API_PREFIX - overrides server.api_prefix
        SESSIONWATCH_TIMEOUT - overrides server.timeout
        SESSIONWATCH_POLL_INTERVAL - overrides polling.interval_seconds

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if url := os.environ.get("SESSIONWATCH_URL"):
        _set(result, "server", "base_url", url)

    prefix = os.environ.get("SESSIONWATCH_API_PREFIX")
    if prefix is not None:
        _set(result, "server", "api_prefix", prefix)

    for env_name, section, key in (
        ("SESSIONWATCH_TIMEOUT", "server", "timeout"),
        ("SESSIONWATCH_POLL_INTERVAL", "polling", "interval_seconds"),
    ):
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            value = float(raw)
        except ValueError:
            logger.warning("Invalid %s value %r, ignoring", env_name, raw)
            continue
        if value <= 0:
            logger.warning("%s must be > 0, got %s, ignoring", env_name, value)
            continue
        _set(result, section, key, value)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "server": {
            "base_url": "http://localhost:8888",
            "api_prefix": "/_polo_/api",
            "timeout": 10.0,
        },
        "polling": {"interval_seconds": 1.0, "stalled_threshold": 5, "follow_logs": True},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> SessionwatchConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (SESSIONWATCH_*)
        2. Project config (.sessionwatch.json)
        3. User config (~/.config/sessionwatch/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .sessionwatch.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated SessionwatchConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation

    Example:
        >>> config = load_config()
        >>> config.polling.interval_seconds
        1.0
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = SessionwatchConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
