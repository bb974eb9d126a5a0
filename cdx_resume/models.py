"""Normalized conversation model shared by both session log formats."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

# A content part is a dict tagged by its "type" key:
#   {"type": "text" | "input_text" | "output_text", "text": str}
#   {"type": "tool_use", "name": str, "input": Any, "id": Optional[str]}
#   {"type": "tool_result"}
#   {"type": "thinking", "thinking": str}
ContentPart = Dict[str, Any]
MessageContent = Union[str, List[ContentPart]]

USER = "user"
ASSISTANT = "assistant"
ROLES = (USER, ASSISTANT)

TOOL_FINISHED = "tool call finished"


@dataclass
class Message:
    """One user or assistant turn of a conversation."""

    session_id: str
    timestamp: datetime
    type: str  # "user" or "assistant"
    content: MessageContent
    cwd: str = ""
    tool_use_result: Optional[Dict[str, Any]] = None


@dataclass
class Conversation:
    """
    A parsed session log.

    Attributes:
        session_id: Session identifier (never empty)
        source_path: JSONL file the conversation was read from
        project_path: Working directory the session ran in ("" if unknown)
        project_name: Display name, usually ``owner/repo``
        git_branch: Branch recorded in the session metadata, if any
        messages: Messages in chronological order
        first_message: Display text of the first user message
        last_message: Display text of the last user message
        start_time: Session start
        end_time: Last activity, never earlier than ``start_time``
    """

    session_id: str
    source_path: str
    project_path: str
    project_name: str
    git_branch: Optional[str]
    messages: List[Message] = field(default_factory=list)
    first_message: str = ""
    last_message: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
