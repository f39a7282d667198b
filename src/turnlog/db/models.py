"""Database models for turnlog.

- ChatSession: one CLI assistant session (keyed by UUID string)
- Entry: one question/response pair
- DiagnosticLog: leveled diagnostics reported by hooks and watchers
"""

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

TITLE_MAX_LENGTH = 100


class Base(DeclarativeBase):
    """Base class for turnlog models."""

    type_annotation_map: ClassVar[dict[type, Any]] = {}


class ChatSession(Base):
    """A logged CLI assistant session."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tool: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    entries: Mapped[list["Entry"]] = relationship(
        "Entry", back_populates="session", cascade="all, delete-orphan"
    )


class Entry(Base):
    """One question/response pair."""

    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sessions.session_id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(400), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    session: Mapped[ChatSession] = relationship("ChatSession", back_populates="entries")

    __table_args__ = (
        Index("idx_entries_session", "session_id"),
        Index("idx_entries_created", "created_at"),
    )

    @staticmethod
    def make_title(question: str) -> str:
        """The question, capped at 100 characters including the ellipsis."""
        if len(question) > TITLE_MAX_LENGTH:
            return question[: TITLE_MAX_LENGTH - 3] + "..."
        return question


class DiagnosticLog(Base):
    """A persisted diagnostic event."""

    __tablename__ = "diagnostics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(String(1024), nullable=False)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    entry_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_diagnostics_level_created", "level", "created_at"),)
