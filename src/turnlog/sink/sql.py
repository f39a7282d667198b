"""SQLAlchemy-backed persistence sink (SQLite by default)."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from turnlog.core.errors import SinkUnavailableError
from turnlog.core.logging import DiagnosticEvent, LogLevel
from turnlog.db.engine import create_engine_for_url, init_database, make_session_factory, session_scope
from turnlog.db.models import DiagnosticLog, Entry
from turnlog.services import conversations, diagnostics
from turnlog.sink.base import PersistenceSink


class SqlSink(PersistenceSink):
    """Writes sessions, entries and diagnostics through SQLAlchemy.

    Also serves as the :class:`~turnlog.core.logging.DiagnosticsWriter` for
    the process, so diagnostics land next to the entries they describe.
    """

    def __init__(self, url: str):
        self.url = url
        self._engine = None
        self._factory = None

    @classmethod
    def connect(cls, url: str) -> SqlSink:
        """Open the database, create missing tables and check connectivity.

        Raises:
            SinkUnavailableError: if the database cannot be reached.
        """
        sink = cls(url)
        try:
            sink._engine = create_engine_for_url(url)
            init_database(sink._engine)
            with sink._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            sink.close()
            raise SinkUnavailableError(f"Cannot open database {url}: {e}") from e
        sink._factory = make_session_factory(sink._engine)
        return sink

    def _session_factory(self):
        if self._factory is None:
            raise SinkUnavailableError("SqlSink used before connect()")
        return self._factory

    def ensure_session(self, session_id: str, tool: str) -> None:
        with session_scope(self._session_factory()) as session:
            conversations.get_or_create_session(session, session_id, tool)

    def write_entry(self, session_id: str, question: str, response: str) -> int:
        with session_scope(self._session_factory()) as session:
            entry = conversations.create_entry(session, session_id, question, response)
            return entry.id

    def write_diagnostic(self, event: DiagnosticEvent) -> None:
        with session_scope(self._session_factory()) as session:
            diagnostics.record_diagnostic(session, event)

    def get_entry(self, entry_id: int) -> Entry | None:
        with session_scope(self._session_factory()) as session:
            return conversations.get_entry(session, entry_id)

    def list_entries(self, limit: int = 20, session_id: str | None = None) -> list[conversations.EntrySummary]:
        with session_scope(self._session_factory()) as session:
            return conversations.list_entries(session, limit=limit, session_id=session_id)

    def count_entries(self, session_id: str | None = None) -> int:
        with session_scope(self._session_factory()) as session:
            return conversations.count_entries(session, session_id=session_id)

    def list_diagnostics(
        self, min_level: LogLevel | None = None, source: str | None = None, limit: int = 100
    ) -> list[DiagnosticLog]:
        with session_scope(self._session_factory()) as session:
            return diagnostics.list_diagnostics(session, min_level=min_level, source=source, limit=limit)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        self._factory = None
