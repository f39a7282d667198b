"""Session and entry operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from turnlog.db.models import ChatSession, Entry


@dataclass
class EntrySummary:
    """Row shown by ``turnlog entries``."""

    id: int
    title: str
    tool: str
    session_id: str
    created_at: datetime
    is_favorite: bool


def get_or_create_session(session: Session, session_id: str, tool: str) -> ChatSession:
    """Return the session row, creating it if missing.

    Args:
        session: Database session.
        session_id: Session UUID string.
        tool: Display name of the producing tool (e.g. ``Codex``).

    Returns:
        Existing or newly added ChatSession.
    """
    existing = session.get(ChatSession, session_id)
    if existing is not None:
        return existing
    chat_session = ChatSession(session_id=session_id, tool=tool)
    session.add(chat_session)
    session.flush()
    return chat_session


def create_entry(session: Session, session_id: str, question: str, response: str) -> Entry:
    """Add a question/response entry.

    Args:
        session: Database session.
        session_id: Owning session id.
        question: User question.
        response: Assistant response.

    Returns:
        The flushed Entry, with its id assigned.

    Raises:
        ValueError: if any argument is blank.
    """
    if not session_id or not session_id.strip():
        raise ValueError("Session ID cannot be null or empty")
    if not question or not question.strip():
        raise ValueError("Question cannot be null or empty")
    if not response or not response.strip():
        raise ValueError("Response cannot be null or empty")

    question = question.strip()
    entry = Entry(
        session_id=session_id.strip(),
        title=Entry.make_title(question),
        question=question,
        response=response.strip(),
        created_at=datetime.now(),
    )
    session.add(entry)
    session.flush()
    return entry


def get_entry(session: Session, entry_id: int) -> Entry | None:
    return session.get(Entry, entry_id)


def list_entries(
    session: Session,
    limit: int = 20,
    session_id: str | None = None,
    include_deleted: bool = False,
) -> list[EntrySummary]:
    """Newest entries first, optionally limited to one session."""
    stmt = select(Entry, ChatSession.tool).join(ChatSession, Entry.session_id == ChatSession.session_id)
    if session_id:
        stmt = stmt.where(Entry.session_id == session_id)
    if not include_deleted:
        stmt = stmt.where(Entry.is_deleted.is_(False), ChatSession.is_deleted.is_(False))
    stmt = stmt.order_by(Entry.created_at.desc(), Entry.id.desc()).limit(limit)

    return [
        EntrySummary(
            id=entry.id,
            title=entry.title,
            tool=tool,
            session_id=entry.session_id,
            created_at=entry.created_at,
            is_favorite=entry.is_favorite,
        )
        for entry, tool in session.execute(stmt).all()
    ]


def count_entries(session: Session, session_id: str | None = None) -> int:
    stmt = select(func.count(Entry.id))
    if session_id:
        stmt = stmt.where(Entry.session_id == session_id)
    return session.scalar(stmt) or 0
