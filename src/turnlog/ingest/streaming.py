"""Streaming response accumulator: chunk events → one completed pair.

Some tools (Gemini CLI's ``AfterModel`` hook) fire once per streamed
fragment of the answer. Fragments are buffered per session until a final
marker arrives.

Per-session state machine::

    Idle --chunk--> Accumulating --chunk--> Accumulating --final--> Idle (pair emitted)
                         |
                         +--different question--> fresh Accumulating (prior turn dropped)

Because each hook invocation is a separate process, the buffer map is
snapshotted to disk between calls via :meth:`StreamAccumulator.save` and
:meth:`StreamAccumulator.load`.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path

from turnlog.core.errors import StoreResult, atomic_write
from turnlog.core.models import ConversationPair, StreamState

logger = logging.getLogger(__name__)


class StreamAccumulator:
    """Per-session buffers of streamed response text."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[str, StreamState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def get(self, session_id: str) -> StreamState | None:
        with self._lock:
            return self._states.get(_key(session_id))

    def snapshot(self) -> dict[str, StreamState]:
        with self._lock:
            return dict(self._states)

    def append_chunk(
        self,
        session_id: str,
        question: str | None = None,
        chunk_text: str | None = None,
        is_final: bool = False,
    ) -> ConversationPair | None:
        """Feed one chunk event; returns the completed pair on the final marker.

        A non-empty question that differs from the buffered one starts a new
        turn and discards the unfinished buffer without emitting it.
        """
        if not session_id or not session_id.strip():
            return None

        key = _key(session_id)
        has_question = bool(question and question.strip())

        with self._lock:
            state = self._states.get(key)
            if state is None or (has_question and state.question != question):
                if state is not None and state.response:
                    logger.debug(
                        "Discarding unfinished response for session %s (%d chars)",
                        session_id,
                        len(state.response),
                    )
                state = StreamState(question=question or "")

            if has_question:
                state.question = question  # type: ignore[assignment]
            if chunk_text:
                state.response += chunk_text
            state.updated_at = datetime.now()
            self._states[key] = state

            if not is_final:
                return None

            del self._states[key]

        if state.question.strip() and state.response.strip():
            return ConversationPair(question=state.question.strip(), response=state.response.strip())
        return None

    def prune(self, max_age: timedelta, now: datetime | None = None) -> int:
        """Drop buffers not touched within ``max_age``. Returns the count dropped."""
        cutoff = (now or datetime.now()) - max_age
        with self._lock:
            stale = [key for key, state in self._states.items() if _naive(state.updated_at) < cutoff]
            for key in stale:
                del self._states[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def load(self, path: Path) -> StoreResult:
        """Replace the in-memory map with the snapshot at ``path``.

        A missing file is not a failure. On any failure the map is left
        empty.
        """
        try:
            if not path.exists():
                return StoreResult.success()
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("stream state snapshot is not a JSON object")
            states = {_key(k): StreamState.from_dict(v) for k, v in data.items() if isinstance(v, dict)}
        except Exception as e:  # noqa: BLE001
            with self._lock:
                self._states = {}
            return StoreResult.failure(e)

        with self._lock:
            self._states = states
        return StoreResult.success()

    def save(self, path: Path) -> StoreResult:
        """Write the map to ``path`` atomically."""
        try:
            with self._lock:
                payload = {key: state.to_dict() for key, state in self._states.items()}
            atomic_write(path, json.dumps(payload, indent=2))
        except Exception as e:  # noqa: BLE001
            return StoreResult.failure(e)
        return StoreResult.success()


def _key(session_id: str) -> str:
    return session_id.strip().casefold()


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value
