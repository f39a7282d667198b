"""Base class for persistence sinks."""

from __future__ import annotations

from abc import ABC, abstractmethod


class PersistenceSink(ABC):
    """Destination for completed question/response pairs.

    The ingestion pipeline depends on exactly these two operations. Any
    exception they raise is reported and treated as a failed write; it never
    stops the hook or watcher.
    """

    @abstractmethod
    def ensure_session(self, session_id: str, tool: str) -> None:
        """Create the session if it does not exist yet. Idempotent."""
        ...

    @abstractmethod
    def write_entry(self, session_id: str, question: str, response: str) -> int:
        """Persist one pair and return its entry id."""
        ...

    def close(self) -> None:
        """Release any held resources."""
        return None
