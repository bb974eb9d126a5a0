"""Tests for scanning the session tree and paginating conversations."""

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from cdx_resume.codex_support import CodexContext
from cdx_resume.conversation_reader import (
    ConversationRepository,
    get_all_conversations,
    get_paginated_conversations,
    read_conversation,
)

BASE = datetime(2025, 9, 10, 8, 0, tzinfo=timezone.utc)
OLD_MTIME = datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp()


def iso(when: datetime) -> str:
    return when.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def write_jsonl(path: Path, records) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    os.utime(path, (OLD_MTIME, OLD_MTIME))
    return path


def rollout_records(session_id, when, cwd="/work/app", text="hello"):
    return [
        {"timestamp": iso(when), "type": "session_meta", "payload": {"id": session_id, "timestamp": iso(when), "cwd": cwd}},
        {
            "timestamp": iso(when),
            "type": "response_item",
            "payload": {"type": "message", "role": "user", "content": [{"type": "input_text", "text": text}]},
        },
    ]


def legacy_records(session_id, when, cwd="/work/app"):
    return [
        {"id": session_id, "timestamp": iso(when)},
        {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": f"<environment_context><cwd>{cwd}</cwd></environment_context>"}],
        },
        {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "legacy question"}]},
    ]


def day_dir(codex_home: Path, when: datetime) -> Path:
    return codex_home / "sessions" / f"{when:%Y}" / f"{when:%m}" / f"{when:%d}"


def make_context(codex_home: Path, version) -> CodexContext:
    """A context whose version probe has already run."""
    context = CodexContext(codex_home=codex_home)
    with patch("cdx_resume.codex_support.get_codex_version", return_value=version):
        assert context.version == version
    return context


@pytest.fixture
def codex_home(tmp_path):
    return tmp_path / ".codex"


@pytest.fixture
def rollout_context(codex_home):
    return make_context(codex_home, "0.36.0")


def repository(context):
    return ConversationRepository(context.codex_home / "sessions", context)


class TestReadConversation:
    """Tests for read_conversation()."""

    def test_picks_parser_by_format(self, tmp_path):
        session = write_jsonl(tmp_path / "s.jsonl", rollout_records("r1", BASE))
        assert read_conversation(session, True).session_id == "r1"
        assert read_conversation(session, False) is None

    def test_missing_file(self, tmp_path):
        assert read_conversation(tmp_path / "missing.jsonl", True) is None

    def test_parser_errors_are_contained(self, tmp_path):
        session = write_jsonl(tmp_path / "s.jsonl", rollout_records("r1", BASE))
        with patch("cdx_resume.conversation_reader.parse_rollout_session", side_effect=ValueError("boom")):
            assert read_conversation(session, True) is None


class TestConversationRepository:
    """Tests for ConversationRepository."""

    def test_missing_sessions_dir(self, rollout_context):
        repo = repository(rollout_context)
        assert list(repo.iter_session_files()) == []
        assert repo.get_all() == []
        assert repo.get_page(10) == ([], 0)

    def test_walks_date_tree(self, codex_home, rollout_context):
        first = write_jsonl(day_dir(codex_home, BASE) / "a.jsonl", rollout_records("a", BASE))
        second = write_jsonl(day_dir(codex_home, BASE + timedelta(days=40)) / "b.jsonl", rollout_records("b", BASE))
        (day_dir(codex_home, BASE) / "notes.txt").write_text("x", encoding="utf-8")
        write_jsonl(codex_home / "sessions" / "stray.jsonl", rollout_records("stray", BASE))

        assert list(repository(rollout_context).iter_session_files()) == [first, second]

    def test_unreadable_root_propagates(self, codex_home, rollout_context):
        (codex_home / "sessions").mkdir(parents=True)
        with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
            with pytest.raises(PermissionError):
                repository(rollout_context).get_all()

    def test_unreadable_month_is_skipped(self, codex_home, rollout_context, monkeypatch):
        august = BASE - timedelta(days=31)
        write_jsonl(day_dir(codex_home, august) / "a.jsonl", rollout_records("august", august))
        write_jsonl(day_dir(codex_home, BASE) / "b.jsonl", rollout_records("september", BASE))
        blocked = day_dir(codex_home, BASE).parent
        original_iterdir = Path.iterdir

        def iterdir(self):
            if self == blocked:
                raise PermissionError(f"denied: {self}")
            return original_iterdir(self)

        monkeypatch.setattr(Path, "iterdir", iterdir)
        conversations = repository(rollout_context).get_all()
        assert [c.session_id for c in conversations] == ["august"]

    def test_sorted_newest_first(self, codex_home, rollout_context):
        for n in range(3):
            when = BASE + timedelta(hours=n)
            write_jsonl(day_dir(codex_home, when) / f"s{n}.jsonl", rollout_records(f"s{n}", when))

        conversations = repository(rollout_context).get_all()
        assert [c.session_id for c in conversations] == ["s2", "s1", "s0"]
        assert conversations[0].end_time == BASE + timedelta(hours=2)

    def test_pagination(self, codex_home, rollout_context):
        for n in range(12):
            when = BASE + timedelta(minutes=n)
            write_jsonl(day_dir(codex_home, when) / f"s{n:02d}.jsonl", rollout_records(f"s{n:02d}", when))

        repo = repository(rollout_context)
        page, total = repo.get_page(10, 5)
        assert total == 12
        assert len(page) == 7
        assert page[0].session_id == "s06"
        assert [c.session_id for c in page] == [c.session_id for c in repo.get_all()[5:15]]

        page, total = repo.get_page(10)
        assert len(page) == 10
        assert repo.get_page(10, 20) == ([], 12)

    def test_malformed_file_is_skipped(self, codex_home, rollout_context):
        folder = day_dir(codex_home, BASE)
        for n in range(5):
            write_jsonl(folder / f"ok{n}.jsonl", rollout_records(f"ok{n}", BASE + timedelta(seconds=n)))
        (folder / "ok2-broken.jsonl").write_text("{broken\n", encoding="utf-8")

        conversations = repository(rollout_context).get_all()
        assert [c.session_id for c in conversations] == ["ok4", "ok3", "ok2", "ok1", "ok0"]

    def test_only_active_format_is_listed(self, codex_home):
        folder = day_dir(codex_home, BASE)
        write_jsonl(folder / "new.jsonl", rollout_records("new-session", BASE))
        write_jsonl(folder / "old.jsonl", legacy_records("old-session", BASE))

        rollout = repository(make_context(codex_home, "0.32.0")).get_all()
        legacy = repository(make_context(codex_home, "0.31.2")).get_all()

        assert [c.session_id for c in rollout] == ["new-session"]
        assert [c.session_id for c in legacy] == ["old-session"]
        assert legacy[0].project_path == "/work/app"
        assert legacy[0].first_message == "legacy question"

    def test_format_detected_from_disk_when_version_unknown(self, codex_home):
        folder = day_dir(codex_home, BASE)
        write_jsonl(folder / "old.jsonl", legacy_records("old-session", BASE))

        conversations = repository(make_context(codex_home, None)).get_all()
        assert [c.session_id for c in conversations] == ["old-session"]

    def test_filter_cwd(self, codex_home, rollout_context):
        folder = day_dir(codex_home, BASE)
        write_jsonl(folder / "a.jsonl", rollout_records("a", BASE, cwd="/work/app"))
        write_jsonl(folder / "b.jsonl", rollout_records("b", BASE, cwd="/work/app/sub"))
        write_jsonl(folder / "c.jsonl", rollout_records("c", BASE, cwd="/work/other"))

        repo = repository(rollout_context)
        assert [c.session_id for c in repo.get_all("/work/app")] == ["a"]
        assert repo.get_page(10, 0, "/work/other")[1] == 1
        assert len(repo.get_all("")) == 3

    def test_find_conversation(self, codex_home, rollout_context):
        folder = day_dir(codex_home, BASE)
        write_jsonl(folder / "a.jsonl", rollout_records("abc-111", BASE))
        write_jsonl(folder / "b.jsonl", rollout_records("abc-222", BASE))
        write_jsonl(folder / "c.jsonl", rollout_records("abc", BASE))

        repo = repository(rollout_context)
        assert repo.find_conversation("abc").session_id == "abc"
        assert repo.find_conversation("222").session_id == "abc-222"
        with pytest.raises(ValueError):
            repo.find_conversation("abc-")
        with pytest.raises(FileNotFoundError):
            repo.find_conversation("zzz")


class TestModuleHelpers:
    """Tests for the context-level convenience functions."""

    def test_helpers_use_codex_home(self, codex_home, rollout_context):
        for n in range(3):
            when = BASE + timedelta(minutes=n)
            write_jsonl(day_dir(codex_home, when) / f"s{n}.jsonl", rollout_records(f"s{n}", when))

        assert [c.session_id for c in get_all_conversations(rollout_context)] == ["s2", "s1", "s0"]
        page, total = get_paginated_conversations(rollout_context, limit=2, offset=1)
        assert [c.session_id for c in page] == ["s1", "s0"]
        assert total == 3
