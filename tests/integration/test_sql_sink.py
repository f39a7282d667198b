"""Integration tests for the SQLAlchemy sink on SQLite."""

from __future__ import annotations

import pytest

from turnlog.core.errors import SinkUnavailableError
from turnlog.core.logging import DiagnosticEvent, Diagnostics, LogLevel
from turnlog.core.models import Tool
from turnlog.db.models import TITLE_MAX_LENGTH, Entry
from turnlog.ingest.pipeline import IngestionPipeline
from turnlog.sink.sql import SqlSink

SESSION = "0199a213-81c0-7800-8aa1-bbab2a035a53"


class TestConnect:
    def test_creates_database_file(self, tmp_path):
        db = tmp_path / "nested" / "turnlog.db"
        sink = SqlSink.connect(f"sqlite:///{db}")
        sink.close()
        assert db.exists()

    def test_unreachable_database(self):
        with pytest.raises(SinkUnavailableError):
            SqlSink.connect("sqlite:////proc/definitely/not/here/turnlog.db")

    def test_bad_url(self):
        with pytest.raises(SinkUnavailableError):
            SqlSink.connect("nosuchdialect://x")


class TestEntries:
    def test_write_and_read(self, sql_sink):
        sql_sink.ensure_session(SESSION, "Codex")
        entry_id = sql_sink.write_entry(SESSION, "  What is 2+2?  ", " 4 ")

        entry = sql_sink.get_entry(entry_id)
        assert entry.question == "What is 2+2?"
        assert entry.response == "4"
        assert entry.title == "What is 2+2?"
        assert entry.is_favorite is False
        assert entry.is_deleted is False

    def test_ensure_session_idempotent(self, sql_sink):
        sql_sink.ensure_session(SESSION, "Codex")
        sql_sink.ensure_session(SESSION, "ClaudeCode")
        sql_sink.write_entry(SESSION, "q", "r")
        assert sql_sink.list_entries()[0].tool == "Codex"

    def test_entry_requires_session(self, sql_sink):
        """Foreign keys are enforced on SQLite."""
        with pytest.raises(Exception):
            sql_sink.write_entry(SESSION, "q", "r")

    def test_blank_fields_rejected(self, sql_sink):
        sql_sink.ensure_session(SESSION, "Codex")
        with pytest.raises(ValueError, match="Question"):
            sql_sink.write_entry(SESSION, "  ", "r")
        with pytest.raises(ValueError, match="Response"):
            sql_sink.write_entry(SESSION, "q", "")

    def test_list_newest_first(self, sql_sink):
        sql_sink.ensure_session(SESSION, "Codex")
        ids = [sql_sink.write_entry(SESSION, f"q{i}", f"r{i}") for i in range(3)]
        rows = sql_sink.list_entries(limit=2)
        assert [row.id for row in rows] == [ids[2], ids[1]]
        assert sql_sink.count_entries() == 3
        assert sql_sink.count_entries(session_id="other") == 0


class TestTitle:
    def test_short_question(self):
        assert Entry.make_title("short") == "short"

    def test_long_question_truncated(self):
        title = Entry.make_title("x" * 250)
        assert len(title) == TITLE_MAX_LENGTH
        assert title.endswith("...")
        assert title[:97] == "x" * 97

    def test_exact_limit_untouched(self):
        assert Entry.make_title("y" * 100) == "y" * 100


class TestDiagnosticsTable:
    def test_write_and_list(self, sql_sink):
        sql_sink.write_diagnostic(DiagnosticEvent(source="hook.codex", message="hi", level=LogLevel.INFO))
        sql_sink.write_diagnostic(
            DiagnosticEvent(source="hook.codex", message="bad", level=LogLevel.ERROR, detail="tb", path="/t")
        )
        rows = sql_sink.list_diagnostics(min_level=LogLevel.WARNING)
        assert [(r.message, r.level, r.detail, r.path) for r in rows] == [("bad", 4, "tb", "/t")]

    def test_long_message_truncated(self, sql_sink):
        sql_sink.write_diagnostic(DiagnosticEvent(source="s", message="m" * 5000, level=LogLevel.ERROR))
        assert len(sql_sink.list_diagnostics()[0].message) == 1024


class TestPipelineWithSqlSink:
    def test_hook_flow(self, tmp_path, sql_sink, write_jsonl):
        """Transcript to stored entry, with diagnostics alongside."""
        path = write_jsonl(
            tmp_path / f"rollout-2025-01-01T00-00-00-{SESSION}.jsonl",
            [
                {"type": "session_meta", "payload": {"id": SESSION}},
                {"type": "event_msg", "payload": {"type": "user_message", "message": "ping"}},
                {"type": "event_msg", "payload": {"type": "agent_message", "message": "pong"}},
            ],
        )
        diagnostics = Diagnostics("hook.codex", writer=sql_sink)
        pipeline = IngestionPipeline(sql_sink, Tool.CODEX, diagnostics)

        result = pipeline.ingest_transcript(path)
        pipeline.ingest_transcript(path)

        assert sql_sink.count_entries() == 1
        row = sql_sink.list_entries()[0]
        assert row.id == result.entry_id
        assert row.session_id == SESSION
        assert row.tool == "Codex"
        messages = [d.message for d in sql_sink.list_diagnostics(source="hook.codex")]
        assert f"Entry written successfully (ID: {result.entry_id})" in messages
