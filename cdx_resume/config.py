"""
Centralized configuration for cdx-resume.

Defaults are defined here. Users can override by creating ~/.cdxresume/config.json
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULTS = {
    # Executable used for version/help probes and for resuming sessions
    "codex_command": "codex",
    # Upper bound in seconds for each `codex --version` / `codex --help` probe
    "probe_timeout": 2.0,
    # Conversations per page in listings
    "items_per_page": 30,
    # Codex home directory; empty string means $CODEX_HOME or ~/.codex
    "codex_home": "",
}

_config_cache: Optional[dict[str, Any]] = None


def get_config_path() -> Path:
    """Location of the user config file."""
    return Path.home() / ".cdxresume" / "config.json"


def _load_user_config() -> dict[str, Any]:
    """Load user config from ~/.cdxresume/config.json if it exists."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Ignoring unreadable config %s: %s", config_path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: expected a JSON object", config_path)
            return {}
        return data
    return {}


def get_config() -> dict[str, Any]:
    """
    Get merged configuration (defaults + user overrides).

    Returns:
        Dict with all config values
    """
    global _config_cache
    if _config_cache is None:
        _config_cache = {**DEFAULTS, **_load_user_config()}
    return _config_cache


def get(key: str, default: Any = None) -> Any:
    """
    Get a specific config value.

    Args:
        key: Config key name
        default: Default if key not found

    Returns:
        Config value
    """
    config = get_config()
    return config.get(key, default)


def reload_config() -> dict[str, Any]:
    """
    Reload configuration from disk (clears cache).

    Returns:
        Fresh merged config
    """
    global _config_cache
    _config_cache = None
    return get_config()


# Convenience accessors for common settings
def codex_command() -> str:
    """Get the Codex executable name or path."""
    return get("codex_command", DEFAULTS["codex_command"]) or DEFAULTS["codex_command"]


def probe_timeout() -> float:
    """Get the timeout for Codex version/help probes, in seconds."""
    try:
        return float(get("probe_timeout", DEFAULTS["probe_timeout"]))
    except (TypeError, ValueError):
        return DEFAULTS["probe_timeout"]


def items_per_page() -> int:
    """Get the number of conversations shown per page."""
    try:
        value = int(get("items_per_page", DEFAULTS["items_per_page"]))
    except (TypeError, ValueError):
        return DEFAULTS["items_per_page"]
    return value if value > 0 else DEFAULTS["items_per_page"]


def codex_home() -> str:
    """Get the configured Codex home ("" when not configured)."""
    return get("codex_home", DEFAULTS["codex_home"]) or ""
