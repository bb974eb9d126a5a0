"""Utility functions for locating Codex session logs."""

import os
from pathlib import Path
from typing import Optional

from cdx_resume import config


def get_codex_home(cli_arg: Optional[str] = None) -> Path:
    """
    Get Codex home directory with proper precedence.

    Precedence order:
    1. CLI argument (if provided)
    2. CODEX_HOME environment variable (if set)
    3. ``codex_home`` from ~/.cdxresume/config.json (if set)
    4. Default ~/.codex

    Args:
        cli_arg: Optional CLI argument value for --codex-home

    Returns:
        Path to Codex home directory
    """
    if cli_arg:
        return Path(cli_arg).expanduser()

    env_var = os.environ.get("CODEX_HOME")
    if env_var:
        return Path(env_var).expanduser()

    configured = config.codex_home()
    if configured:
        return Path(configured).expanduser()

    return Path.home() / ".codex"


def get_sessions_dir(codex_home: Path) -> Path:
    """Root of the YYYY/MM/DD session log tree."""
    return codex_home / "sessions"


def get_history_file(codex_home: Path) -> Path:
    """Consolidated history written by rollout-format Codex releases."""
    return codex_home / "history.jsonl"
