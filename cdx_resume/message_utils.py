"""Turn normalized message content into display strings."""

import os
import re
from pathlib import Path
from typing import Iterable, List, Optional

from cdx_resume.models import Conversation, Message, MessageContent

TEXT_PART_TYPES = ("text", "input_text", "output_text")
HIDE_CHOICES = ("tool", "thinking", "user", "assistant")
DEFAULT_HIDE = ["tool", "thinking"]

PATCH_MARKER_RE = re.compile(r"\*\*\* (Add|Update|Delete) File: ([^\n]+)")
MAX_PATCH_FILES = 3
MAX_PROMPT_CHARS = 100


def summarize_apply_patch(patch: str) -> str:
    """
    Summarize an apply_patch payload.

    Example: ``apply_patch: [a.py, b.py] +1 ~1 -0``
    """
    adds = patch.count("*** Add File: ")
    updates = patch.count("*** Update File: ")
    deletes = patch.count("*** Delete File: ")

    markers = PATCH_MARKER_RE.findall(patch)
    files = [path for _, path in markers[:MAX_PATCH_FILES]]
    more = len(markers) - len(files)

    file_summary = ""
    if files:
        more_str = f", +{more} more" if more else ""
        file_summary = f" [{', '.join(files)}{more_str}]"
    return f"apply_patch:{file_summary} +{adds} ~{updates} -{deletes}"


def describe_tool_input(tool_input) -> str:
    """Pick the most useful one-line description of a tool call's input."""
    if not isinstance(tool_input, dict):
        return ""

    command = tool_input.get("command")
    if isinstance(command, str):
        return command
    if isinstance(command, list):
        if (
            len(command) > 1
            and command[0] == "apply_patch"
            and isinstance(command[1], str)
        ):
            return summarize_apply_patch(command[1])
        if all(isinstance(c, str) for c in command):
            return " ".join(command)
        return ""

    description = tool_input.get("description")
    if isinstance(description, str):
        return description

    prompt = tool_input.get("prompt")
    if isinstance(prompt, str):
        return prompt[:MAX_PROMPT_CHARS] + "..."

    return ""


def extract_message_text(content: Optional[MessageContent]) -> str:
    """
    Flatten message content into a display string.

    Strings pass through unchanged. Lists of content parts are rendered one
    part per line; unknown part types and empty parts are skipped.

    Args:
        content: String or list of content part dicts (or None)

    Returns:
        Display text, "" when there is nothing to show
    """
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    parts: List[str] = []
    for item in content:
        if not item or not isinstance(item, dict):
            continue
        part_type = item.get("type")

        if part_type in TEXT_PART_TYPES:
            text = item.get("text")
            if text:
                parts.append(text)
        elif part_type == "tool_use":
            name = item.get("name")
            if name:
                parts.append(f"[Tool: {name}] {describe_tool_input(item.get('input'))}")
        elif part_type == "tool_result":
            parts.append("[Tool Result]")
        elif part_type == "thinking":
            parts.append("[Thinking...]")

    return "\n".join(parts)


def _clean_summary_text(text: str) -> str:
    text = re.sub(r"[\r\n]+", " ", text)
    text = re.sub(r"<[^>]*>", "", text)
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[`'\"]", "", text)
    text = re.sub(r"^\[.*?\]\s*", "", text)
    return text.strip()


def generate_conversation_summary(conversation: Conversation) -> str:
    """Summarize a conversation by its first meaningful user message."""
    user_texts = []
    for msg in conversation.messages:
        if msg.type != "user" or not msg.content:
            continue
        text = extract_message_text(msg.content)
        if text.startswith("[Tool Result]") or text.startswith("[Tool Output]"):
            continue
        if text.strip():
            user_texts.append(text)

    if not user_texts:
        return "No user messages"

    cleaned = _clean_summary_text(user_texts[0])
    if not cleaned and len(user_texts) > 1:
        cleaned = _clean_summary_text(user_texts[1])
    return cleaned or "No summary available"


def format_conversation_summary(conversation: Conversation, max_chars: int = 80) -> str:
    """One-line preview of the first message, capped at ``max_chars``."""
    first = conversation.first_message
    preview = first.replace("\n", " ")[:max_chars].strip()
    return preview + ("..." if len(first) > max_chars else "")


def format_project_path(path: str) -> str:
    """Shorten the home directory prefix of ``path`` to ``~``."""
    home = os.environ.get("HOME") or os.environ.get("USERPROFILE") or str(Path.home())
    if home and path.startswith(home):
        return "~" + path[len(home):]
    return path


def format_session_id(session_id: str) -> str:
    """Show the first 8 characters of a session ID."""
    return session_id[:8] if session_id else "unknown"


def filter_messages(messages: Iterable[Message], hide: Iterable[str] = ()) -> List[Message]:
    """
    Drop messages the user asked to hide.

    Args:
        messages: Conversation messages
        hide: Any of "tool", "thinking", "user", "assistant"

    Returns:
        Messages left to display, in order
    """
    hide = set(hide)
    kept = []
    for msg in messages:
        is_tool_result = msg.tool_use_result is not None or (
            isinstance(msg.content, list)
            and any(isinstance(p, dict) and p.get("type") == "tool_result" for p in msg.content)
        )
        text = extract_message_text(msg.content)

        if "tool" in hide and (is_tool_result or text.startswith("[Tool:")):
            continue
        if "thinking" in hide and text == "[Thinking...]":
            continue
        if "user" in hide and msg.type == "user":
            continue
        if "assistant" in hide and msg.type == "assistant":
            continue
        kept.append(msg)
    return kept
