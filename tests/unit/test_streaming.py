"""Tests for the streaming response accumulator."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

from turnlog.core.models import ConversationPair
from turnlog.ingest.streaming import StreamAccumulator


class TestAppendChunk:
    def test_chunks_joined_on_final(self):
        """'Hel' + 'lo' followed by a bare final marker yields 'Hello'."""
        acc = StreamAccumulator()
        assert acc.append_chunk("s1", question="greet me", chunk_text="Hel") is None
        assert acc.append_chunk("s1", chunk_text="lo") is None
        pair = acc.append_chunk("s1", is_final=True)
        assert pair == ConversationPair("greet me", "Hello")
        assert len(acc) == 0

    def test_chunk_whitespace_preserved_until_final(self):
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="q", chunk_text="Hello")
        acc.append_chunk("s1", chunk_text=" world ")
        assert acc.get("s1").response == "Hello world "
        assert acc.append_chunk("s1", is_final=True).response == "Hello world"

    def test_final_chunk_with_text(self):
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="q", chunk_text="a")
        assert acc.append_chunk("s1", chunk_text="b", is_final=True) == ConversationPair("q", "ab")

    def test_question_is_sticky(self):
        """Repeating the same question keeps accumulating."""
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="q", chunk_text="a")
        acc.append_chunk("s1", question="q", chunk_text="b")
        acc.append_chunk("s1", chunk_text="c")
        assert acc.append_chunk("s1", is_final=True) == ConversationPair("q", "abc")

    def test_new_question_discards_unfinished_turn(self):
        """A different question starts over; the abandoned turn is never emitted."""
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="first", chunk_text="partial")
        acc.append_chunk("s1", question="second", chunk_text="fresh")
        assert acc.append_chunk("s1", is_final=True) == ConversationPair("second", "fresh")

    def test_no_question_emits_nothing(self):
        acc = StreamAccumulator()
        acc.append_chunk("s1", chunk_text="Hel")
        acc.append_chunk("s1", chunk_text="lo")
        assert acc.append_chunk("s1", is_final=True) is None
        assert acc.get("s1") is None

    def test_empty_response_emits_nothing(self):
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="q")
        assert acc.append_chunk("s1", chunk_text="   ", is_final=True) is None

    def test_final_without_state(self):
        assert StreamAccumulator().append_chunk("s1", is_final=True) is None

    def test_blank_session_ignored(self):
        acc = StreamAccumulator()
        assert acc.append_chunk("  ", question="q", chunk_text="a", is_final=True) is None
        assert len(acc) == 0

    def test_sessions_independent(self):
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="q1", chunk_text="one")
        acc.append_chunk("s2", question="q2", chunk_text="two")
        assert acc.append_chunk("s2", is_final=True) == ConversationPair("q2", "two")
        assert acc.append_chunk("s1", is_final=True) == ConversationPair("q1", "one")

    def test_session_key_case_insensitive(self):
        acc = StreamAccumulator()
        acc.append_chunk("Session-A", question="q", chunk_text="x")
        assert acc.append_chunk("session-a", is_final=True) == ConversationPair("q", "x")


class TestPrune:
    def test_drops_stale(self):
        acc = StreamAccumulator()
        acc.append_chunk("old", question="q", chunk_text="a")
        acc.append_chunk("new", question="q", chunk_text="b")
        acc.get("old").updated_at = datetime.now() - timedelta(hours=48)

        assert acc.prune(timedelta(hours=24)) == 1
        assert acc.get("old") is None
        assert acc.get("new") is not None


class TestSnapshots:
    def test_save_then_load(self, tmp_path):
        """A pending turn survives a process boundary."""
        path = tmp_path / "gemini_stream_state.json"
        first = StreamAccumulator()
        first.append_chunk("s1", question="q", chunk_text="Hel")
        assert first.save(path).ok

        second = StreamAccumulator()
        assert second.load(path).ok
        second.append_chunk("s1", chunk_text="lo")
        assert second.append_chunk("s1", is_final=True) == ConversationPair("q", "Hello")

    def test_snapshot_format(self, tmp_path):
        path = tmp_path / "state.json"
        acc = StreamAccumulator()
        acc.append_chunk("S1", question="q", chunk_text="r")
        acc.save(path)
        data = json.loads(path.read_text())
        assert set(data) == {"s1"}
        assert data["s1"]["question"] == "q"
        assert data["s1"]["response"] == "r"
        assert "updated_at" in data["s1"]

    def test_load_missing_file_is_ok(self, tmp_path):
        acc = StreamAccumulator()
        assert acc.load(tmp_path / "absent.json").ok
        assert len(acc) == 0

    def test_load_corrupt_file_leaves_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{corrupt", encoding="utf-8")
        acc = StreamAccumulator()
        acc.append_chunk("s1", question="q", chunk_text="a")

        result = acc.load(path)
        assert not result.ok
        assert "JSONDecodeError" in result.error
        assert len(acc) == 0

    def test_save_failure_reported(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        result = StreamAccumulator().save(blocker / "state.json")
        assert not result.ok
        assert result.error
