"""Core data models for turnlog."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# One parsed JSONL line or array element. No fixed schema.
TranscriptNode = Any

MISSING_QUESTION = "[missing user message]"


class Tool(str, Enum):
    """CLI assistant that produced a transcript."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        return _TOOL_DISPLAY_NAMES[self]


_TOOL_DISPLAY_NAMES = {
    Tool.CLAUDE: "ClaudeCode",
    Tool.CODEX: "Codex",
    Tool.GEMINI: "GeminiCLI",
}


class IngestOutcome(str, Enum):
    """Result of a single ingestion attempt."""

    WRITTEN = "written"
    DUPLICATE = "duplicate"
    NO_PAIR = "no_pair"
    PENDING = "pending"  # chunk buffered, turn not finished
    MISSING = "missing"  # transcript not found
    FAILED = "failed"  # sink write failed


def hash_pair(question: str, response: str) -> str:
    """Uppercase hex SHA-256 over ``question + "\\n" + response``."""
    digest = hashlib.sha256(f"{question}\n{response}".encode("utf-8")).hexdigest()
    return digest.upper()


@dataclass(frozen=True)
class ConversationPair:
    """One completed user question and assistant response."""

    question: str
    response: str

    def __post_init__(self):
        if not self.question or not self.question.strip():
            raise ValueError("ConversationPair.question must be non-empty")
        if not self.response or not self.response.strip():
            raise ValueError("ConversationPair.response must be non-empty")

    def content_hash(self) -> str:
        return hash_pair(self.question, self.response)


@dataclass
class StreamState:
    """In-flight streamed response for one session."""

    question: str = ""
    response: str = ""
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "response": self.response,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreamState:
        return cls(
            question=data.get("question") or "",
            response=data.get("response") or "",
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class CheckpointRecord:
    """Last ingested state for one checkpoint key."""

    last_hash: str
    last_size: int = 0
    last_entry_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_size": self.last_size,
            "last_hash": self.last_hash,
            "last_entry_at": self.last_entry_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckpointRecord:
        return cls(
            last_hash=str(data.get("last_hash") or ""),
            last_size=int(data.get("last_size") or 0),
            last_entry_at=_parse_timestamp(data.get("last_entry_at")),
        )


@dataclass
class HookInput:
    """Normalized payload of one hook invocation."""

    session_id: str | None = None
    transcript_path: str | None = None
    hook_event_name: str | None = None
    question: str | None = None
    response: str | None = None
    chunk_text: str | None = None
    is_final: bool = False

    @property
    def is_chunk_event(self) -> bool:
        """True for streaming delivery (one fragment of a response per call)."""
        if (self.hook_event_name or "").lower() == "aftermodel":
            return True
        return self.chunk_text is not None or self.is_final


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now()
