"""Ingestion pipeline: one hook invocation or watcher event → at most one entry.

Flow for a transcript::

    read_transcript → extract_last_pair → checkpoint check
        → resolve_session_id → sink.ensure_session / sink.write_entry
        → checkpoint update

Flow for a streamed chunk::

    StreamAccumulator.append_chunk → (on final) checkpoint check → sink write

Nothing in here raises to the caller: every failure is reported through
:class:`~turnlog.core.logging.Diagnostics` and surfaces as an
:class:`~turnlog.core.models.IngestOutcome`.
"""

from __future__ import annotations

import os
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from turnlog.core.errors import StoreResult
from turnlog.core.logging import Diagnostics
from turnlog.core.models import CheckpointRecord, ConversationPair, HookInput, IngestOutcome, Tool
from turnlog.ingest.checkpoint import CheckpointStore
from turnlog.ingest.extractor import extract_last_pair
from turnlog.ingest.identity import HEAD_NODE_LIMIT, deterministic_uuid, infer_session_hint, resolve_session_id
from turnlog.ingest.reader import read_transcript
from turnlog.ingest.streaming import StreamAccumulator
from turnlog.sink.base import PersistenceSink


@dataclass
class IngestResult:
    """What one ingestion attempt did."""

    outcome: IngestOutcome
    session_id: str | None = None
    entry_id: int | None = None
    pair: ConversationPair | None = None


def expand_path(path: str | Path) -> Path:
    """Expand ``~`` and environment variables in a transcript path."""
    return Path(os.path.expanduser(os.path.expandvars(str(path))))


class IngestionPipeline:
    """Wires reader, extractor, accumulator, checkpoints and sink for one tool.

    The stores are passed in by handle so a hook process, a watcher and
    tests can each own theirs. When ``checkpoint_path`` /
    ``stream_state_path`` are given, :meth:`load_state` and
    :meth:`save_state` snapshot the stores there; with ``autosave`` the
    checkpoint snapshot is also written after every new entry (watch mode).
    """

    def __init__(
        self,
        sink: PersistenceSink,
        tool: Tool,
        diagnostics: Diagnostics,
        *,
        checkpoints: CheckpointStore | None = None,
        streams: StreamAccumulator | None = None,
        checkpoint_path: Path | None = None,
        stream_state_path: Path | None = None,
        stream_state_ttl: timedelta | None = None,
        autosave: bool = False,
    ):
        self.sink = sink
        self.tool = tool
        self.diagnostics = diagnostics
        self.checkpoints = checkpoints if checkpoints is not None else CheckpointStore()
        self.streams = streams if streams is not None else StreamAccumulator()
        self.checkpoint_path = checkpoint_path
        self.stream_state_path = stream_state_path
        self.stream_state_ttl = stream_state_ttl
        self.autosave = autosave

    # -- State snapshots --

    def load_state(self) -> None:
        """Load both snapshots. Failures degrade to empty state."""
        if self.checkpoint_path is not None:
            self._report_store("load checkpoints", self.checkpoint_path, self.checkpoints.load(self.checkpoint_path))
        if self.stream_state_path is not None:
            self._report_store("load stream state", self.stream_state_path, self.streams.load(self.stream_state_path))

    def save_state(self) -> None:
        """Write both snapshots, pruning stale stream buffers first."""
        if self.checkpoint_path is not None:
            self._report_store("save checkpoints", self.checkpoint_path, self.checkpoints.save(self.checkpoint_path))
        if self.stream_state_path is not None:
            if self.stream_state_ttl is not None:
                dropped = self.streams.prune(self.stream_state_ttl)
                if dropped:
                    self.diagnostics.debug(f"Dropped {dropped} stale stream buffer(s)")
            self._report_store("save stream state", self.stream_state_path, self.streams.save(self.stream_state_path))

    def _report_store(self, action: str, path: Path, result: StoreResult) -> None:
        if not result.ok:
            self.diagnostics.warning(f"Failed to {action}; continuing with in-memory state", detail=result.error, path=str(path))

    # -- Entry points --

    def handle_hook(self, hook: HookInput, raw_payload: str = "") -> IngestResult:
        """Ingest whatever one decoded hook payload carries."""
        if hook.is_chunk_event:
            if not hook.session_id:
                self.diagnostics.warning("Chunk event without a session id ignored")
                return IngestResult(IngestOutcome.NO_PAIR)
            return self.ingest_chunk(
                hook.session_id,
                question=hook.question,
                chunk_text=hook.chunk_text,
                is_final=hook.is_final,
                checkpoint_key=self._transcript_key(hook.transcript_path),
            )

        result: IngestResult | None = None
        if hook.transcript_path:
            result = self.ingest_transcript(hook.transcript_path, hook.session_id)
            if result.outcome not in (IngestOutcome.NO_PAIR, IngestOutcome.MISSING):
                return result

        if hook.question and hook.response:
            session_id = hook.session_id or deterministic_uuid(raw_payload)
            pair = ConversationPair(question=hook.question, response=hook.response)
            return self.ingest_pair(
                pair,
                session_id=resolve_session_id(session_id, None),
                checkpoint_key=self._transcript_key(hook.transcript_path) or session_id,
            )

        if result is not None:
            return result
        self.diagnostics.warning("Payload missing required fields (question, response)", detail=raw_payload or None)
        return IngestResult(IngestOutcome.NO_PAIR)

    @staticmethod
    def _transcript_key(transcript_path: str | None) -> str | None:
        # Same key ingest_transcript uses, so "~/x" and its expansion share a record.
        return str(expand_path(transcript_path)) if transcript_path else None

    def ingest_transcript(self, transcript_path: str | Path, session_id: str | None = None) -> IngestResult:
        """Persist the newest completed exchange of a transcript, once."""
        path = expand_path(transcript_path)
        if not path.is_file():
            self.diagnostics.error(f"Transcript not found: {path}", path=str(path))
            return IngestResult(IngestOutcome.MISSING)

        nodes = read_transcript(path)
        pair = extract_last_pair(nodes)
        if pair is None:
            self.diagnostics.debug(f"No Q&A pair found in {path}", path=str(path))
            return IngestResult(IngestOutcome.NO_PAIR)

        resolved = resolve_session_id(session_id, path, nodes[:HEAD_NODE_LIMIT])
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        return self.ingest_pair(pair, session_id=resolved, checkpoint_key=str(path), transcript_size=size)

    def ingest_watched(self, path: Path) -> IngestResult:
        """Watcher callback: the filename supplies the candidate session id."""
        return self.ingest_transcript(path, infer_session_hint(path))

    def ingest_chunk(
        self,
        session_id: str,
        question: str | None = None,
        chunk_text: str | None = None,
        is_final: bool = False,
        checkpoint_key: str | None = None,
    ) -> IngestResult:
        """Buffer one streamed fragment; persist the turn when it completes."""
        pair = self.streams.append_chunk(session_id, question=question, chunk_text=chunk_text, is_final=is_final)
        if pair is None:
            if is_final:
                self.diagnostics.debug(f"Final chunk for session {session_id} completed no pair")
                return IngestResult(IngestOutcome.NO_PAIR)
            return IngestResult(IngestOutcome.PENDING)

        return self.ingest_pair(
            pair,
            session_id=resolve_session_id(session_id, None),
            checkpoint_key=checkpoint_key or session_id,
        )

    def ingest_pair(
        self,
        pair: ConversationPair,
        *,
        session_id: str,
        checkpoint_key: str,
        transcript_size: int = 0,
    ) -> IngestResult:
        """Checkpoint check, sink write, checkpoint update."""
        content_hash = pair.content_hash()
        if self.checkpoints.is_duplicate(checkpoint_key, content_hash):
            self.diagnostics.debug(f"Duplicate detected (hash match): {checkpoint_key}")
            return IngestResult(IngestOutcome.DUPLICATE, session_id=session_id, pair=pair)

        try:
            self.sink.ensure_session(session_id, self.tool.display_name)
        except Exception as e:  # noqa: BLE001
            self.diagnostics.error(
                f"Failed to ensure session: {e}",
                detail=traceback.format_exc(),
                session_id=session_id,
            )

        try:
            entry_id = self.sink.write_entry(session_id, pair.question, pair.response)
        except Exception as e:  # noqa: BLE001
            self.diagnostics.error(
                f"Failed to log entry: {e}",
                detail=traceback.format_exc(),
                session_id=session_id,
            )
            return IngestResult(IngestOutcome.FAILED, session_id=session_id, pair=pair)

        self.diagnostics.info(
            f"Entry written successfully (ID: {entry_id})",
            session_id=session_id,
            entry_id=entry_id,
        )
        self.checkpoints.update(
            checkpoint_key,
            CheckpointRecord(last_hash=content_hash, last_size=transcript_size, last_entry_at=datetime.now()),
        )
        if self.autosave and self.checkpoint_path is not None:
            self._report_store("save checkpoints", self.checkpoint_path, self.checkpoints.save(self.checkpoint_path))

        return IngestResult(IngestOutcome.WRITTEN, session_id=session_id, entry_id=entry_id, pair=pair)
