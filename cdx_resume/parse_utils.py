"""Helpers shared by the legacy and rollout session log parsers."""

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Optional

from cdx_resume.message_utils import extract_message_text
from cdx_resume.models import Conversation, Message

logger = logging.getLogger(__name__)

CWD_MARKER_RE = re.compile(r"<cwd>([^<]+)</cwd>")
ENVIRONMENT_CONTEXT_TAG = "<environment_context>"
NO_PROJECT = "-"


def read_lines(session_file: Path) -> List[str]:
    """Read the non-blank lines of a JSONL file in one pass."""
    with open(session_file, "r", encoding="utf-8") as f:
        return [line for line in f.read().split("\n") if line.strip()]


def parse_json_object(line: str) -> Optional[dict]:
    """Parse one JSONL line, returning None unless it is a JSON object."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as found in session logs.

    Naive values are assumed to be UTC. Returns None for anything that is
    not a parseable string.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def file_mtime(session_file: Path) -> datetime:
    """Modification time of ``session_file`` as an aware datetime."""
    return datetime.fromtimestamp(session_file.stat().st_mtime, tz=timezone.utc)


def synthesize_timestamp(start: datetime, counter: int) -> datetime:
    """Start time plus ``counter`` milliseconds."""
    return start + timedelta(milliseconds=counter)


def extract_cwd_from_text(text: str) -> Optional[str]:
    """Return the path inside the first ``<cwd>...</cwd>`` marker, if any."""
    match = CWD_MARKER_RE.search(text)
    return match.group(1) if match else None


def find_cwd_marker(items: List[Any]) -> Optional[str]:
    """First ``<cwd>`` marker in a list of content parts."""
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("text"), str):
            found = extract_cwd_from_text(item["text"])
            if found:
                return found
    return None


def is_environment_context(items: List[Any]) -> bool:
    """True if any content part carries the ``<environment_context>`` tag."""
    return any(
        isinstance(item, dict)
        and isinstance(item.get("text"), str)
        and ENVIRONMENT_CONTEXT_TAG in item["text"]
        for item in items
    )


def parse_tool_arguments(raw: Any) -> Any:
    """
    Decode tool-call arguments.

    JSON strings are decoded; other values are returned as-is. Returns None
    when a string cannot be decoded.
    """
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Could not decode tool arguments: %.80s", raw)
        return None


def project_name_from_repo_url(url: Optional[str]) -> str:
    """
    Derive ``owner/repo`` from a git remote URL.

    ``https://github.com/openai/codex.git`` -> ``openai/codex``
    """
    if not url or not isinstance(url, str):
        return NO_PROJECT
    without_git = re.sub(r"\.git$", "", url)
    parts = without_git.split("/")
    if len(parts) < 2:
        return NO_PROJECT
    return f"{parts[-2]}/{parts[-1]}"


def git_info(meta: dict) -> dict:
    """The ``git`` block of a metadata record, or an empty dict."""
    git = meta.get("git")
    return git if isinstance(git, dict) else {}


def build_conversation(
    session_file: Path,
    session_id: str,
    messages: List[Message],
    project_path: str,
    project_name: str,
    git_branch: Optional[str],
    start_time: datetime,
) -> Optional[Conversation]:
    """
    Assemble a Conversation from parsed messages.

    Returns None when no messages were kept. The end time is the file's
    modification time, raised to the latest message timestamp or start time
    when those are later.
    """
    if not messages:
        return None

    user_messages = [m for m in messages if m.type == "user"]
    first_message = extract_message_text(user_messages[0].content) if user_messages else ""
    last_message = extract_message_text(user_messages[-1].content) if user_messages else ""

    try:
        end_time = file_mtime(session_file)
    except OSError:
        end_time = start_time
    end_time = max(end_time, start_time, max(m.timestamp for m in messages))

    return Conversation(
        session_id=session_id,
        source_path=str(session_file),
        project_path=project_path,
        project_name=project_name,
        git_branch=git_branch,
        messages=messages,
        first_message=first_message,
        last_message=last_message,
        start_time=start_time,
        end_time=end_time,
    )
