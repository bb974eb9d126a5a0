"""Probe which resume options the installed Codex CLI supports."""

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from cdx_resume import config
from cdx_resume.codex_version import get_codex_version, is_new_rollout_format
from cdx_resume.session_utils import get_codex_home

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class CodexSupport:
    """Flags found in ``codex --help``."""

    supports_resume_flag: bool = False  # --resume [sessionId]
    supports_continue_flag: bool = False  # --continue
    supports_session_id_flag: bool = False  # --session-id <uuid>
    supports_resume_command: bool = False  # codex resume <sessionId>


def parse_help_text(help_text: str) -> CodexSupport:
    """Scan ``codex --help`` output for the flags we care about."""
    normalized = help_text.lower()
    return CodexSupport(
        supports_resume_flag=bool(
            re.search(r"(?<![\w-])--resume\b", normalized)
            or re.search(r"(^|\n)\s*-r\b", normalized)
        ),
        supports_continue_flag=bool(
            re.search(r"(?<![\w-])--continue\b", normalized)
            or re.search(r"(^|\n)\s*-c\b(?!\s*,?\s*--config)", normalized)
        ),
        supports_session_id_flag=bool(re.search(r"(?<![\w-])--session-id\b", normalized)),
        supports_resume_command=bool(re.search(r"(^|\n)\s*resume\s", normalized)),
    )


def detect_codex_support(
    help_text: Optional[str] = None,
    command: str = "codex",
    timeout: float = 2.0,
) -> CodexSupport:
    """
    Detect supported resume flags.

    Args:
        help_text: Help output to scan instead of running the CLI
        command: Codex executable
        timeout: Seconds to wait for ``<command> --help``

    Returns:
        CodexSupport; all False if the CLI cannot be run
    """
    if help_text is None:
        try:
            result = subprocess.run(
                [command, "--help"],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired, ValueError) as e:
            logger.debug("Could not run %s --help: %s", command, e)
            return CodexSupport()
        if result.returncode != 0:
            logger.debug("%s --help exited with %d", command, result.returncode)
            return CodexSupport()
        help_text = result.stdout or ""
    return parse_help_text(help_text)


@dataclass
class CodexContext:
    """
    What we know about the local Codex installation.

    Each probe runs at most once per context, on first use. Create one
    context per process (or per test) and pass it to the readers and command
    builders that need it.
    """

    codex_home: Path
    command: str = "codex"
    timeout: float = 2.0
    _version: Optional[str] = field(default=_UNSET, init=False, repr=False)  # type: ignore[assignment]
    _support: Optional[CodexSupport] = field(default=None, init=False, repr=False)
    _new_format: Optional[bool] = field(default=None, init=False, repr=False)

    @classmethod
    def from_config(cls, codex_home: Optional[str] = None) -> "CodexContext":
        """Build a context from ~/.cdxresume/config.json and CLI overrides."""
        return cls(
            codex_home=get_codex_home(codex_home),
            command=config.codex_command(),
            timeout=config.probe_timeout(),
        )

    @property
    def version(self) -> Optional[str]:
        if self._version is _UNSET:
            self._version = get_codex_version(self.command, self.timeout)
        return self._version

    @property
    def support(self) -> CodexSupport:
        if self._support is None:
            self._support = detect_codex_support(command=self.command, timeout=self.timeout)
        return self._support

    @property
    def is_new_format(self) -> bool:
        if self._new_format is None:
            self._new_format = is_new_rollout_format(self.version, self.codex_home)
        return self._new_format


def build_resume_args(
    session_id: str,
    source_path: Optional[str],
    support: CodexSupport,
    extra_args: Optional[List[str]] = None,
    command: str = "codex",
) -> List[str]:
    """
    Build the argv that resumes a session.

    Prefers ``codex resume <id>``, then ``codex --resume <id>``, and falls
    back to ``-c experimental_resume=<log path>`` for older releases.
    """
    args = [command, *(extra_args or [])]
    if support.supports_resume_command:
        return args + ["resume", session_id]
    if support.supports_resume_flag:
        return args + ["--resume", session_id]
    return args + ["-c", f"experimental_resume={source_path or session_id}"]


def build_new_session_args(extra_args: Optional[List[str]] = None, command: str = "codex") -> List[str]:
    """Build the argv that starts a fresh session."""
    return [command, *(extra_args or [])]
