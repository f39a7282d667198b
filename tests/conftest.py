"""Shared test fixtures for turnlog."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from turnlog.config import Settings, reset_settings
from turnlog.core.logging import Diagnostics
from turnlog.core.models import Tool
from turnlog.ingest.pipeline import IngestionPipeline
from turnlog.sink.base import PersistenceSink
from turnlog.sink.sql import SqlSink


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.local/state and any .env."""
    monkeypatch.setenv("TURNLOG_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.delenv("TURNLOG_DATABASE_URL", raising=False)
    monkeypatch.delenv("TURNLOG_WATCH_ROOT", raising=False)
    monkeypatch.delenv("TURNLOG_DEBUG", raising=False)
    monkeypatch.delenv("TURNLOG_VERBOSE", raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(state_dir=tmp_path / "state")


class FakeSink(PersistenceSink):
    """In-memory sink recording every call."""

    def __init__(self, fail_writes: bool = False, fail_sessions: bool = False):
        self.fail_writes = fail_writes
        self.fail_sessions = fail_sessions
        self.sessions: dict[str, str] = {}
        self.entries: list[tuple[str, str, str]] = []

    def ensure_session(self, session_id: str, tool: str) -> None:
        if self.fail_sessions:
            raise RuntimeError("session table unavailable")
        self.sessions.setdefault(session_id, tool)

    def write_entry(self, session_id: str, question: str, response: str) -> int:
        if self.fail_writes:
            raise RuntimeError("disk full")
        self.entries.append((session_id, question, response))
        return len(self.entries)


class RecordingWriter:
    """DiagnosticsWriter that keeps events in a list."""

    def __init__(self):
        self.events = []

    def write_diagnostic(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def diagnostics(recording_writer) -> Diagnostics:
    diag = Diagnostics("test", writer=recording_writer, debug_enabled=True)
    yield diag
    diag.close()


@pytest.fixture
def pipeline(fake_sink, diagnostics) -> IngestionPipeline:
    return IngestionPipeline(fake_sink, Tool.CODEX, diagnostics)


@pytest.fixture
def sql_sink(tmp_path) -> SqlSink:
    sink = SqlSink.connect(f"sqlite:///{tmp_path / 'db' / 'turnlog.db'}")
    yield sink
    sink.close()


def _write_jsonl(path: Path, nodes: list, append: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a" if append else "w", encoding="utf-8") as f:
        for node in nodes:
            f.write(json.dumps(node) + "\n")
    return path


@pytest.fixture
def write_jsonl():
    """Write (or with append=True, add) nodes as one JSON document per line."""
    return _write_jsonl
