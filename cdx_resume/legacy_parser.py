"""
Parser for legacy Codex session logs (Codex releases before 0.32.0).

Format:
    Line 1: metadata object, e.g.
        {"id": "...", "timestamp": "...", "git": {"repository_url": "...", "branch": "..."}}
    Following lines: one record per line, tagged by "type":
        message               - {"type": "message", "role": "user", "content": [...]}
        function_call         - {"type": "function_call", "name": ..., "arguments": "<json>", "call_id": ...}
        function_call_output  - {"type": "function_call_output", "call_id": ..., "output": "<json>"}
        reasoning             - dropped
    plus {"record_type": "state", ...} snapshots, which are dropped.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

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


def _tool_stdout(raw_output) -> Optional[str]:
    """Extract stdout from a function_call_output ``output`` JSON string."""
    if not isinstance(raw_output, str):
        return None
    try:
        decoded = json.loads(raw_output)
    except json.JSONDecodeError:
        return None
    if isinstance(decoded, dict) and isinstance(decoded.get("output"), str):
        return decoded["output"]
    return None


def parse_legacy_session(session_file: Path) -> Optional[Conversation]:
    """
    Parse a legacy-format session file.

    Args:
        session_file: Path to the JSONL session log

    Returns:
        The parsed Conversation, or None if the metadata line is unreadable
        or no messages were kept.

    Raises:
        OSError: If the file cannot be read
    """
    lines = read_lines(session_file)
    if not lines:
        return None

    meta = parse_json_object(lines[0])
    if meta is None:
        logger.debug("Unparsable metadata line in %s", session_file)
        return None

    session_id = meta.get("id") if isinstance(meta.get("id"), str) and meta.get("id") else session_file.stem
    start_time = parse_timestamp(meta.get("timestamp"))
    if start_time is None:
        try:
            start_time = file_mtime(session_file)
        except OSError:
            start_time = datetime.now(timezone.utc)
    git = git_info(meta)

    messages = []
    cwd_from_intro: Optional[str] = None
    counter = 0

    for line_no, line in enumerate(lines[1:], start=2):
        data = parse_json_object(line)
        if data is None:
            logger.debug("Skipping malformed line %d in %s", line_no, session_file)
            continue
        if data.get("record_type") == "state":
            continue

        record_type = data.get("type")
        if record_type == "reasoning":
            continue

        if record_type == "message" and data.get("role") in ROLES:
            role = data["role"]
            items = data.get("content") if isinstance(data.get("content"), list) else []
            if role == USER:
                if cwd_from_intro is None:
                    cwd_from_intro = find_cwd_marker(items)
                if is_environment_context(items):
                    counter += 1
                    continue
            messages.append(
                Message(
                    session_id=session_id,
                    timestamp=synthesize_timestamp(start_time, counter),
                    type=role,
                    content=items,
                    cwd=cwd_from_intro or "",
                )
            )
            counter += 1

        elif record_type == "function_call":
            name = data.get("name") if isinstance(data.get("name"), str) else "tool"
            part = {"type": "tool_use", "name": name, "id": data.get("call_id")}
            tool_input = parse_tool_arguments(data.get("arguments"))
            if tool_input is not None:
                part["input"] = tool_input
            messages.append(
                Message(
                    session_id=session_id,
                    timestamp=synthesize_timestamp(start_time, counter),
                    type=ASSISTANT,
                    content=[part],
                    cwd=cwd_from_intro or "",
                )
            )
            counter += 1

        elif record_type == "function_call_output":
            stdout = _tool_stdout(data.get("output"))
            messages.append(
                Message(
                    session_id=session_id,
                    timestamp=synthesize_timestamp(start_time, counter),
                    type=ASSISTANT,
                    content=[{"type": "tool_result"}],
                    cwd=cwd_from_intro or "",
                    tool_use_result={"stdout": stdout} if stdout else {"content": TOOL_FINISHED},
                )
            )
            counter += 1

    branch = git.get("branch") if isinstance(git.get("branch"), str) else None

    return build_conversation(
        session_file,
        session_id=session_id,
        messages=messages,
        project_path=cwd_from_intro or "",
        project_name=project_name_from_repo_url(git.get("repository_url")) if git else NO_PROJECT,
        git_branch=branch or "-",
        start_time=start_time,
    )
