"""Diagnostic log operations."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from turnlog.core.logging import DiagnosticEvent, LogLevel
from turnlog.db.models import DiagnosticLog

_MESSAGE_MAX = 1024


def record_diagnostic(session: Session, event: DiagnosticEvent) -> DiagnosticLog:
    """Store one diagnostic event."""
    row = DiagnosticLog(
        source=event.source[:64],
        message=event.message[:_MESSAGE_MAX],
        detail=event.detail,
        path=event.path,
        session_id=event.session_id,
        entry_id=event.entry_id,
        level=int(event.level),
        created_at=event.created_at.astimezone().replace(tzinfo=None),
    )
    session.add(row)
    return row


def list_diagnostics(
    session: Session,
    min_level: LogLevel | None = None,
    source: str | None = None,
    limit: int = 100,
) -> list[DiagnosticLog]:
    """Newest diagnostics first."""
    stmt = select(DiagnosticLog)
    if min_level is not None:
        stmt = stmt.where(DiagnosticLog.level >= int(min_level))
    if source:
        stmt = stmt.where(DiagnosticLog.source == source)
    stmt = stmt.order_by(DiagnosticLog.created_at.desc(), DiagnosticLog.id.desc()).limit(limit)
    return list(session.scalars(stmt).all())
