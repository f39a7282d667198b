"""Checkpoint store: last ingested pair hash per key, for duplicate suppression."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from turnlog.core.errors import StoreResult, atomic_write
from turnlog.core.models import CheckpointRecord


class CheckpointStore:
    """In-memory ``key -> CheckpointRecord`` map with a JSON snapshot.

    Only the most recent ingestion per key is remembered. Keys compare
    case-insensitively so ``C:/Logs/a.jsonl`` and ``c:/logs/a.jsonl`` share
    a record.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, CheckpointRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def is_duplicate(self, key: str, content_hash: str) -> bool:
        """True only if ``key`` has a record whose hash equals ``content_hash``."""
        with self._lock:
            record = self._records.get(_key(key))
        return record is not None and record.last_hash == content_hash

    def get(self, key: str) -> CheckpointRecord | None:
        with self._lock:
            return self._records.get(_key(key))

    def update(self, key: str, record: CheckpointRecord) -> None:
        """Overwrite the record for ``key``."""
        with self._lock:
            self._records[_key(key)] = record

    def snapshot(self) -> dict[str, CheckpointRecord]:
        with self._lock:
            return dict(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def load(self, path: Path) -> StoreResult:
        """Populate the map from ``path``.

        A missing file is not a failure. A corrupt or unreadable file leaves
        the map empty ("nothing seen yet"), never partially filled.
        """
        try:
            if not path.exists():
                return StoreResult.success()
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("checkpoint snapshot is not a JSON object")
            records = {_key(k): CheckpointRecord.from_dict(v) for k, v in data.items() if isinstance(v, dict)}
        except Exception as e:  # noqa: BLE001
            with self._lock:
                self._records = {}
            return StoreResult.failure(e)

        with self._lock:
            self._records = records
        return StoreResult.success()

    def save(self, path: Path) -> StoreResult:
        """Snapshot the map to ``path`` atomically."""
        try:
            with self._lock:
                payload = {key: record.to_dict() for key, record in self._records.items()}
            atomic_write(path, json.dumps(payload, indent=2))
        except Exception as e:  # noqa: BLE001
            return StoreResult.failure(e)
        return StoreResult.success()


def _key(key: str) -> str:
    return key.casefold()
