"""turnlog - log question/answer turns from CLI assistant transcripts.

Usage:
    from turnlog import IngestionPipeline, SqlSink, Tool
    from turnlog.core.logging import Diagnostics

    sink = SqlSink.connect("sqlite:///turns.db")
    pipeline = IngestionPipeline(sink, Tool.CODEX, Diagnostics("example"))
    pipeline.ingest_transcript("~/.codex/sessions/rollout.jsonl")
"""

from turnlog.core.models import ConversationPair, HookInput, IngestOutcome, Tool
from turnlog.ingest.checkpoint import CheckpointStore
from turnlog.ingest.pipeline import IngestionPipeline, IngestResult
from turnlog.ingest.streaming import StreamAccumulator
from turnlog.ingest.watcher import TranscriptWatcher
from turnlog.sink.base import PersistenceSink
from turnlog.sink.sql import SqlSink

__version__ = "0.1.0"

__all__ = [
    "CheckpointStore",
    "ConversationPair",
    "HookInput",
    "IngestOutcome",
    "IngestResult",
    "IngestionPipeline",
    "PersistenceSink",
    "SqlSink",
    "StreamAccumulator",
    "Tool",
    "TranscriptWatcher",
]
