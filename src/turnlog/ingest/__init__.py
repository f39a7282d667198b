"""Transcript ingestion: reader, extractor, accumulator, stores, watcher, pipeline."""

from turnlog.ingest.checkpoint import CheckpointStore
from turnlog.ingest.extractor import extract_last_pair
from turnlog.ingest.identity import resolve_session_id
from turnlog.ingest.payload import decode_hook_payload
from turnlog.ingest.pipeline import IngestionPipeline, IngestResult
from turnlog.ingest.reader import read_transcript
from turnlog.ingest.streaming import StreamAccumulator
from turnlog.ingest.watcher import TranscriptWatcher

__all__ = [
    "CheckpointStore",
    "IngestResult",
    "IngestionPipeline",
    "StreamAccumulator",
    "TranscriptWatcher",
    "decode_hook_payload",
    "extract_last_pair",
    "read_transcript",
    "resolve_session_id",
]
