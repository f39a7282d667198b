"""Database models and engine helpers for turnlog."""

from turnlog.db.engine import create_engine_for_url, init_database, make_session_factory, session_scope
from turnlog.db.models import Base, ChatSession, DiagnosticLog, Entry

__all__ = [
    "Base",
    "ChatSession",
    "DiagnosticLog",
    "Entry",
    "create_engine_for_url",
    "init_database",
    "make_session_factory",
    "session_scope",
]
