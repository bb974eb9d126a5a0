"""Tests for message text extraction and conversation summaries."""

from datetime import datetime, timezone

import pytest

from cdx_resume.message_utils import (
    extract_message_text,
    filter_messages,
    format_conversation_summary,
    format_project_path,
    format_session_id,
    generate_conversation_summary,
    summarize_apply_patch,
)
from cdx_resume.models import Conversation, Message

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


def make_message(msg_type, content, tool_use_result=None):
    return Message(
        session_id="s1",
        timestamp=NOW,
        type=msg_type,
        content=content,
        tool_use_result=tool_use_result,
    )


def make_conversation(messages, first_message=""):
    return Conversation(
        session_id="s1",
        source_path="/tmp/s1.jsonl",
        project_path="/work/app",
        project_name="acme/app",
        git_branch="main",
        messages=messages,
        first_message=first_message,
        start_time=NOW,
        end_time=NOW,
    )


class TestExtractMessageText:
    """Tests for extract_message_text()."""

    def test_empty_content(self):
        assert extract_message_text(None) == ""
        assert extract_message_text("") == ""
        assert extract_message_text([]) == ""

    def test_string_passes_through(self):
        assert extract_message_text("plain") == "plain"
        assert extract_message_text("Multi\nline") == "Multi\nline"

    def test_text_parts_joined_by_newline(self):
        content = [
            {"type": "text", "text": "First part"},
            {"type": "input_text", "text": "Second part"},
            {"type": "output_text", "text": "Third part"},
        ]
        assert extract_message_text(content) == "First part\nSecond part\nThird part"

    def test_skips_empty_and_unknown_parts(self):
        content = [
            None,
            {"type": "text", "text": ""},
            {"type": "input_image", "image_url": "data:..."},
            {"type": "text", "text": "kept"},
        ]
        assert extract_message_text(content) == "kept"

    def test_tool_use_with_command_string(self):
        content = [{"type": "tool_use", "name": "bash", "input": {"command": "ls -la"}}]
        assert extract_message_text(content) == "[Tool: bash] ls -la"

    def test_tool_use_with_command_list(self):
        content = [{"type": "tool_use", "name": "shell", "input": {"command": ["bash", "-lc", "ls"]}}]
        assert extract_message_text(content) == "[Tool: shell] bash -lc ls"

    def test_tool_use_with_mixed_command_list(self):
        content = [{"type": "tool_use", "name": "shell", "input": {"command": ["ls", 3]}}]
        assert extract_message_text(content) == "[Tool: shell] "

    def test_tool_use_with_description(self):
        content = [{"type": "tool_use", "name": "search", "input": {"description": "Searching for files"}}]
        assert extract_message_text(content) == "[Tool: search] Searching for files"

    def test_tool_use_with_long_prompt(self):
        prompt = (
            "This is a very long prompt that exceeds one hundred characters and "
            "should be truncated with ellipsis at the end to maintain readability"
        )
        content = [{"type": "tool_use", "name": "ai_model", "input": {"prompt": prompt}}]
        result = extract_message_text(content)
        assert result == f"[Tool: ai_model] {prompt[:100]}..."
        assert len(result) == 120

    def test_tool_use_without_input(self):
        content = [{"type": "tool_use", "name": "simple_tool"}]
        assert extract_message_text(content) == "[Tool: simple_tool] "

    def test_command_takes_priority_over_description(self):
        content = [
            {
                "type": "tool_use",
                "name": "shell",
                "input": {"command": "pwd", "description": "ignored"},
            }
        ]
        assert extract_message_text(content) == "[Tool: shell] pwd"

    def test_markers(self):
        assert extract_message_text([{"type": "tool_result"}]) == "[Tool Result]"
        assert extract_message_text([{"type": "thinking", "thinking": "hmm"}]) == "[Thinking...]"

    def test_combined(self):
        content = [
            {"type": "text", "text": "Let me help you with that."},
            {"type": "tool_use", "name": "bash", "input": {"command": "pwd"}},
            {"type": "tool_result"},
            {"type": "text", "text": "The current directory is shown above."},
        ]
        assert extract_message_text(content) == (
            "Let me help you with that.\n"
            "[Tool: bash] pwd\n"
            "[Tool Result]\n"
            "The current directory is shown above."
        )


class TestApplyPatchSummary:
    """Tests for apply_patch command summaries."""

    def test_add_and_update(self):
        content = [
            {
                "type": "tool_use",
                "name": "shell",
                "input": {"command": ["apply_patch", "*** Add File: a\n*** Update File: b\n"]},
            }
        ]
        assert extract_message_text(content) == "[Tool: shell] apply_patch: [a, b] +1 ~1 -0"

    def test_more_than_three_files(self):
        patch = (
            "*** Begin Patch\n"
            "*** Update File: src/one.py\n"
            "*** Update File: src/two.py\n"
            "*** Delete File: src/three.py\n"
            "*** Add File: src/four.py\n"
            "*** Add File: src/five.py\n"
            "*** End Patch\n"
        )
        assert summarize_apply_patch(patch) == (
            "apply_patch: [src/one.py, src/two.py, src/three.py, +2 more] +2 ~2 -1"
        )

    def test_no_file_markers(self):
        assert summarize_apply_patch("*** Begin Patch\n*** End Patch") == "apply_patch: +0 ~0 -0"

    def test_apply_patch_without_body_joins_words(self):
        content = [{"type": "tool_use", "name": "shell", "input": {"command": ["apply_patch"]}}]
        assert extract_message_text(content) == "[Tool: shell] apply_patch"


class TestConversationSummary:
    """Tests for generate_conversation_summary() and format helpers."""

    def test_no_user_messages(self):
        conversation = make_conversation([make_message("assistant", [{"type": "output_text", "text": "hi"}])])
        assert generate_conversation_summary(conversation) == "No user messages"

    def test_cleans_first_user_message(self):
        conversation = make_conversation(
            [
                make_message("user", [{"type": "input_text", "text": "Fix the `parser`\n<b>now</b>  please"}]),
                make_message("user", [{"type": "input_text", "text": "second"}]),
            ]
        )
        assert generate_conversation_summary(conversation) == "Fix the parser now please"

    def test_skips_tool_results(self):
        conversation = make_conversation(
            [
                make_message("user", [{"type": "tool_result"}]),
                make_message("user", "Real question"),
            ]
        )
        assert generate_conversation_summary(conversation) == "Real question"

    def test_falls_back_to_second_message(self):
        conversation = make_conversation(
            [
                make_message("user", "<only_tags></only_tags>"),
                make_message("user", "Second message"),
            ]
        )
        assert generate_conversation_summary(conversation) == "Second message"

    def test_no_summary_available(self):
        conversation = make_conversation([make_message("user", "<tag></tag>")])
        assert generate_conversation_summary(conversation) == "No summary available"

    def test_format_conversation_summary(self):
        conversation = make_conversation([], first_message="line one\nline two")
        assert format_conversation_summary(conversation) == "line one line two"
        conversation = make_conversation([], first_message="x" * 100)
        assert format_conversation_summary(conversation) == "x" * 80 + "..."

    def test_format_project_path(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/dev")
        assert format_project_path("/home/dev/src/app") == "~/src/app"
        assert format_project_path("/opt/app") == "/opt/app"

    def test_format_session_id(self):
        assert format_session_id("0199bfc9-c444-77e1") == "0199bfc9"
        assert format_session_id("") == "unknown"


class TestFilterMessages:
    """Tests for filter_messages()."""

    @pytest.fixture
    def messages(self):
        return [
            make_message("user", [{"type": "input_text", "text": "question"}]),
            make_message("assistant", [{"type": "tool_use", "name": "shell", "input": {"command": "ls"}}]),
            make_message(
                "assistant",
                [{"type": "tool_result"}],
                tool_use_result={"content": "tool call finished"},
            ),
            make_message("assistant", [{"type": "thinking", "thinking": "..."}]),
            make_message("assistant", [{"type": "output_text", "text": "answer"}]),
        ]

    def test_nothing_hidden(self, messages):
        assert filter_messages(messages) == messages

    def test_hide_tool_and_thinking(self, messages):
        kept = filter_messages(messages, ["tool", "thinking"])
        assert [extract_message_text(m.content) for m in kept] == ["question", "answer"]

    def test_hide_user(self, messages):
        kept = filter_messages(messages, ["user"])
        assert all(m.type == "assistant" for m in kept)
        assert len(kept) == 4

    def test_hide_assistant(self, messages):
        kept = filter_messages(messages, ["assistant"])
        assert [m.type for m in kept] == ["user"]
