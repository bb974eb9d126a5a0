"""
Read Codex conversations from the session log tree.

Layout: <codex_home>/sessions/YYYY/MM/DD/<name>.jsonl

Every query rescans the tree; nothing is cached between calls.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from cdx_resume.codex_support import CodexContext
from cdx_resume.codex_version import is_new_format_file
from cdx_resume.legacy_parser import parse_legacy_session
from cdx_resume.models import Conversation
from cdx_resume.rollout_parser import parse_rollout_session
from cdx_resume.session_utils import get_sessions_dir

logger = logging.getLogger(__name__)


def read_conversation(session_file: Path, new_format: bool) -> Optional[Conversation]:
    """
    Parse one session file with the parser for the given format.

    Never raises: unreadable or broken files yield None.
    """
    parser = parse_rollout_session if new_format else parse_legacy_session
    try:
        return parser(session_file)
    except Exception as e:
        logger.warning("Error reading conversation file %s: %s", session_file, e)
        return None


def _list_dir(path: Path) -> List[Path]:
    """Sorted children of an intermediate directory; [] if unreadable."""
    try:
        return sorted(path.iterdir())
    except OSError as e:
        logger.debug("Skipping %s: %s", path, e)
        return []


class ConversationRepository:
    """
    Conversations found under a Codex sessions directory.

    Args:
        sessions_dir: Root of the YYYY/MM/DD tree
        context: Codex installation context deciding the active log format
    """

    def __init__(self, sessions_dir: Path, context: CodexContext):
        self.sessions_dir = Path(sessions_dir)
        self.context = context

    def iter_session_files(self) -> Iterator[Path]:
        """
        Yield every ``.jsonl`` file of the tree, depth first.

        A missing root yields nothing. Any other error listing the root
        (e.g. permission denied) propagates.
        """
        try:
            years = sorted(self.sessions_dir.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return

        for year_dir in years:
            for month_dir in _list_dir(year_dir):
                for day_dir in _list_dir(month_dir):
                    for session_file in _list_dir(day_dir):
                        if session_file.suffix == ".jsonl" and session_file.is_file():
                            yield session_file

    def _collect(self, filter_cwd: Optional[str]) -> List[Conversation]:
        new_format = self.context.is_new_format
        conversations = []
        for session_file in self.iter_session_files():
            if is_new_format_file(session_file) != new_format:
                continue
            conversation = read_conversation(session_file, new_format)
            if conversation is None:
                continue
            if filter_cwd and conversation.project_path != filter_cwd:
                continue
            conversations.append(conversation)

        conversations.sort(key=lambda c: c.end_time, reverse=True)
        return conversations

    def get_all(self, filter_cwd: Optional[str] = None) -> List[Conversation]:
        """
        All conversations, newest activity first.

        Args:
            filter_cwd: If given, keep only conversations whose project path
                equals it exactly

        Returns:
            Conversations sorted by end time, descending
        """
        return self._collect(filter_cwd)

    def get_page(
        self, limit: int, offset: int = 0, filter_cwd: Optional[str] = None
    ) -> Tuple[List[Conversation], int]:
        """
        One page of :meth:`get_all`.

        Returns:
            Tuple of (conversations[offset:offset + limit], total count)
        """
        conversations = self._collect(filter_cwd)
        offset = max(offset, 0)
        limit = max(limit, 0)
        return conversations[offset:offset + limit], len(conversations)

    def find_conversation(self, session_id: str) -> Conversation:
        """
        Look up a conversation by full or partial session ID.

        Raises:
            FileNotFoundError: If no conversation matches
            ValueError: If a partial ID matches more than one conversation
        """
        session_id = session_id.strip()
        conversations = self._collect(None)
        for conversation in conversations:
            if conversation.session_id == session_id:
                return conversation

        matches = [c for c in conversations if session_id and session_id in c.session_id]
        if not matches:
            raise FileNotFoundError(
                f"Session '{session_id}' not found in Codex sessions directory: {self.sessions_dir}"
            )
        if len(matches) > 1:
            ids = ", ".join(c.session_id for c in matches)
            raise ValueError(f"Multiple sessions match '{session_id}': {ids}")
        return matches[0]


def get_repository(context: CodexContext) -> ConversationRepository:
    """Repository over ``<codex_home>/sessions`` of ``context``."""
    return ConversationRepository(get_sessions_dir(context.codex_home), context)


def get_all_conversations(
    context: CodexContext, filter_cwd: Optional[str] = None
) -> List[Conversation]:
    """All conversations under the context's Codex home, newest first."""
    return get_repository(context).get_all(filter_cwd)


def get_paginated_conversations(
    context: CodexContext,
    limit: int,
    offset: int = 0,
    filter_cwd: Optional[str] = None,
) -> Tuple[List[Conversation], int]:
    """One page of conversations plus the total count."""
    return get_repository(context).get_page(limit, offset, filter_cwd)
