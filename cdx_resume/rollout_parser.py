"""
Parser for rollout-format Codex session logs (Codex 0.32.0 and later).

Format:
    Line 1: {"type": "session_meta", "payload": {"id", "timestamp", "cwd", "git": {...}}}
    Following lines:
        {"type": "response_item", "timestamp": "...", "payload": {"type": <variant>, ...}}
        {"type": "event_msg", "timestamp": "...", "payload": {...}}   - dropped
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from cdx_resume.message_utils import TEXT_PART_TYPES
from cdx_resume.models import ASSISTANT, ROLES, TOOL_FINISHED, USER, Conversation, Message
from cdx_resume.parse_utils import (
    NO_PROJECT,
    build_conversation,
    file_mtime,
    find_cwd_marker,
    git_info,
    is_environment_context,
    parse_json_object,
    parse_timestamp,
    parse_tool_arguments,
    project_name_from_repo_url,
    read_lines,
    synthesize_timestamp,
)

logger = logging.getLogger(__name__)

SESSION_META = "session_meta"
RESPONSE_ITEM = "response_item"
EVENT_MSG = "event_msg"


def is_session_meta(record: Optional[dict]) -> bool:
    """True if ``record`` is a rollout ``session_meta`` header."""
    return isinstance(record, dict) and record.get("type") == SESSION_META


def _text_parts(content: Any) -> List[dict]:
    """Keep only the text-bearing parts of a message payload."""
    if not isinstance(content, list):
        return []
    return [
        item
        for item in content
        if isinstance(item, dict) and item.get("type") in TEXT_PART_TYPES
    ]


def _tool_use(name: str, tool_input: Any, call_id: Any) -> List[dict]:
    part = {"type": "tool_use", "name": name, "id": call_id}
    # Undecodable arguments are left out
    if tool_input is not None:
        part["input"] = tool_input
    return [part]


def _payload_to_part(payload: dict, payload_type: str) -> Optional[List[dict]]:
    """
    Map a non-message response_item payload to content parts.

    Returns None for payloads that are not shown.
    """
    call_id = payload.get("call_id")

    if payload_type == "function_call":
        name = payload.get("name") if isinstance(payload.get("name"), str) else "tool"
        return _tool_use(name, parse_tool_arguments(payload.get("arguments")), call_id)

    if payload_type == "custom_tool_call":
        name = payload.get("name") if isinstance(payload.get("name"), str) else "tool"
        raw_input = payload.get("input")
        tool_input = parse_tool_arguments(raw_input)
        if tool_input is None and isinstance(raw_input, str):
            # Freeform custom tool input is not always JSON
            tool_input = raw_input
        return _tool_use(f"custom:{name}", tool_input, call_id)

    if payload_type in ("function_call_output", "custom_tool_call_output"):
        return [{"type": "tool_result"}]

    if payload_type == "local_shell_call":
        action = payload.get("action") if isinstance(payload.get("action"), dict) else {}
        return _tool_use("shell", {"command": action.get("command")}, call_id)

    if payload_type == "web_search_call":
        action = payload.get("action") if isinstance(payload.get("action"), dict) else {}
        return _tool_use("web_search", {"query": action.get("query")}, call_id)

    return None


def parse_rollout_session(session_file: Path) -> Optional[Conversation]:
    """
    Parse a rollout-format session file.

    Args:
        session_file: Path to the JSONL session log

    Returns:
        The parsed Conversation, or None if line 1 is not a ``session_meta``
        record or no messages were kept.

    Raises:
        OSError: If the file cannot be read
    """
    lines = read_lines(session_file)
    if not lines:
        return None

    header = parse_json_object(lines[0])
    if not is_session_meta(header):
        logger.debug("No session_meta header in %s", session_file)
        return None

    meta = header.get("payload") if isinstance(header.get("payload"), dict) else {}
    session_id = meta.get("id") if isinstance(meta.get("id"), str) and meta.get("id") else session_file.stem
    start_time = parse_timestamp(meta.get("timestamp")) or parse_timestamp(header.get("timestamp"))
    if start_time is None:
        try:
            start_time = file_mtime(session_file)
        except OSError:
            start_time = datetime.now(timezone.utc)
    git = git_info(meta)
    project_path: Optional[str] = meta.get("cwd") if isinstance(meta.get("cwd"), str) and meta.get("cwd") else None

    messages = []
    counter = 0

    for line_no, line in enumerate(lines[1:], start=2):
        record = parse_json_object(line)
        if record is None:
            logger.debug("Skipping malformed line %d in %s", line_no, session_file)
            continue

        record_type = record.get("type")
        if record_type == EVENT_MSG:
            counter += 1
            continue
        if record_type != RESPONSE_ITEM:
            continue

        payload = record.get("payload")
        if not isinstance(payload, dict):
            continue
        payload_type = str(payload.get("type", "")).lower()
        timestamp = parse_timestamp(record.get("timestamp"))

        if payload_type == "message":
            role = payload.get("role")
            if role not in ROLES:
                continue
            raw_items = payload.get("content") if isinstance(payload.get("content"), list) else []
            if role == USER:
                if project_path is None:
                    project_path = find_cwd_marker(raw_items)
                if is_environment_context(raw_items):
                    counter += 1
                    continue
            msg_type = role
            content = _text_parts(raw_items)
        elif payload_type == "reasoning":
            continue
        else:
            content = _payload_to_part(payload, payload_type)
            if content is None:
                continue
            msg_type = ASSISTANT

        messages.append(
            Message(
                session_id=session_id,
                timestamp=timestamp or synthesize_timestamp(start_time, counter),
                type=msg_type,
                content=content,
                cwd=project_path or "",
                tool_use_result={"content": TOOL_FINISHED} if payload_type.endswith("_output") else None,
            )
        )
        counter += 1

    project_name = project_name_from_repo_url(git.get("repository_url"))
    if project_name == NO_PROJECT and project_path:
        project_name = Path(project_path).name or NO_PROJECT
    branch = git.get("branch") if isinstance(git.get("branch"), str) else None

    return build_conversation(
        session_file,
        session_id=session_id,
        messages=messages,
        project_path=project_path or "",
        project_name=project_name,
        git_branch=branch or "-",
        start_time=start_time,
    )
