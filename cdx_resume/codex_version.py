"""Detect which session log format the local Codex installation writes."""

import logging
import re
import subprocess
from pathlib import Path
from typing import Optional

from cdx_resume.parse_utils import parse_json_object
from cdx_resume.rollout_parser import is_session_meta
from cdx_resume.session_utils import get_history_file, get_sessions_dir

logger = logging.getLogger(__name__)

# Rollout format (session_meta header) introduced in this release
ROLLOUT_FORMAT_VERSION = "0.32.0"
DEFAULT_TIMEOUT = 2.0

SEMVER_RE = re.compile(r"(\d+\.\d+\.\d+(?:-[^\s]+)?)")


def get_codex_version(command: str = "codex", timeout: float = DEFAULT_TIMEOUT) -> Optional[str]:
    """
    Ask the Codex CLI for its version.

    Args:
        command: Codex executable
        timeout: Seconds to wait for ``<command> --version``

    Returns:
        First semver-shaped token of the output (e.g. "0.32.0-alpha.1"), or
        None if the CLI is missing, times out, fails, or prints no version.
    """
    try:
        result = subprocess.run(
            [command, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired, ValueError) as e:
        logger.debug("Could not run %s --version: %s", command, e)
        return None

    if result.returncode != 0:
        logger.debug("%s --version exited with %d", command, result.returncode)
        return None

    match = SEMVER_RE.search(result.stdout or "")
    return match.group(1) if match else None


def _version_parts(version: str) -> list[int]:
    core = version.strip().split("+")[0].split("-")[0]
    parts = []
    for piece in core.split(".")[:3]:
        digits = re.match(r"\d+", piece)
        parts.append(int(digits.group(0)) if digits else 0)
    return parts + [0] * (3 - len(parts))


def compare_semver(a: str, b: str) -> int:
    """
    Compare two versions by major.minor.patch.

    Pre-release and build metadata are ignored; missing components count
    as 0.

    Returns:
        1 if a > b, -1 if a < b, 0 if equal
    """
    pa = _version_parts(a)
    pb = _version_parts(b)
    for da, db in zip(pa, pb):
        if da > db:
            return 1
        if da < db:
            return -1
    return 0


def is_new_format_file(session_file: Path) -> bool:
    """
    Check whether a single log file uses the rollout format.

    Only the first non-blank line is read.
    """
    try:
        with open(session_file, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    return is_session_meta(parse_json_object(line))
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Could not read %s: %s", session_file, e)
    return False


def _sorted_subdirs(path: Path) -> list[Path]:
    """Child directories, newest name first; [] if ``path`` is unreadable."""
    try:
        return sorted((p for p in path.iterdir() if p.is_dir()), reverse=True)
    except OSError as e:
        logger.debug("Skipping %s: %s", path, e)
        return []


def find_latest_session_file(sessions_dir: Path) -> Optional[Path]:
    """
    Find the most recent session log.

    Scans YYYY/MM/DD directories newest first and returns the
    lexicographically last ``.jsonl`` file of the first non-empty day.
    """
    for year_dir in _sorted_subdirs(sessions_dir):
        for month_dir in _sorted_subdirs(year_dir):
            for day_dir in _sorted_subdirs(month_dir):
                session_files = sorted(day_dir.glob("*.jsonl"), reverse=True)
                if session_files:
                    return session_files[0]
    return None


def probe_local_logs(codex_home: Path) -> bool:
    """
    Guess the log format from files on disk.

    Used only when the Codex version is unknown. A consolidated
    ``history.jsonl`` means rollout format; otherwise the newest session log
    decides. Anything inconclusive means legacy.
    """
    try:
        if get_history_file(codex_home).exists():
            return True
        latest = find_latest_session_file(get_sessions_dir(codex_home))
    except OSError as e:
        logger.debug("Log probe failed under %s: %s", codex_home, e)
        return False
    if latest is None:
        return False
    return is_new_format_file(latest)


def is_new_rollout_format(version: Optional[str], codex_home: Path) -> bool:
    """
    Decide whether session logs use the rollout format.

    Args:
        version: Codex version string, or None if unknown
        codex_home: Codex home used for the on-disk fallback probe

    Returns:
        True for rollout format, False for legacy
    """
    if version:
        return compare_semver(version, ROLLOUT_FORMAT_VERSION) >= 0
    return probe_local_logs(codex_home)
