"""Tests for the checkpoint store and pair hashing."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime

import pytest

from turnlog.core.models import CheckpointRecord, ConversationPair, hash_pair
from turnlog.ingest.checkpoint import CheckpointStore


class TestHashPair:
    def test_known_digest(self):
        """SHA-256 of 'q\\nr', uppercase hex."""
        expected = hashlib.sha256(b"q\nr").hexdigest().upper()
        assert hash_pair("q", "r") == expected

    def test_separator_matters(self):
        assert hash_pair("ab", "c") != hash_pair("a", "bc")

    def test_pair_hash_matches(self):
        assert ConversationPair("q", "r").content_hash() == hash_pair("q", "r")

    def test_blank_pair_rejected(self):
        with pytest.raises(ValueError):
            ConversationPair("", "r")
        with pytest.raises(ValueError):
            ConversationPair("q", "  ")


class TestCheckpointStore:
    def test_unknown_key_is_not_duplicate(self):
        assert not CheckpointStore().is_duplicate("/t/a.jsonl", "ABC")

    def test_same_hash_is_duplicate(self):
        store = CheckpointStore()
        store.update("/t/a.jsonl", CheckpointRecord(last_hash="ABC"))
        assert store.is_duplicate("/t/a.jsonl", "ABC")
        assert not store.is_duplicate("/t/a.jsonl", "DEF")

    def test_keys_case_insensitive(self):
        store = CheckpointStore()
        store.update("C:/Logs/A.jsonl", CheckpointRecord(last_hash="ABC"))
        assert store.is_duplicate("c:/logs/a.jsonl", "ABC")
        assert len(store) == 1

    def test_only_last_record_kept(self):
        store = CheckpointStore()
        store.update("k", CheckpointRecord(last_hash="ONE"))
        store.update("k", CheckpointRecord(last_hash="TWO"))
        assert not store.is_duplicate("k", "ONE")
        assert store.get("k").last_hash == "TWO"

    def test_clear(self):
        store = CheckpointStore()
        store.update("k", CheckpointRecord(last_hash="ONE"))
        store.clear()
        assert len(store) == 0


class TestCheckpointSnapshots:
    def test_save_then_load(self, tmp_path):
        path = tmp_path / "codex_state.json"
        when = datetime(2025, 1, 2, 3, 4, 5)
        store = CheckpointStore()
        store.update("/t/a.jsonl", CheckpointRecord(last_hash="ABC", last_size=42, last_entry_at=when))
        assert store.save(path).ok

        loaded = CheckpointStore()
        assert loaded.load(path).ok
        record = loaded.get("/t/a.jsonl")
        assert record == CheckpointRecord(last_hash="ABC", last_size=42, last_entry_at=when)

    def test_snapshot_format(self, tmp_path):
        path = tmp_path / "codex_state.json"
        store = CheckpointStore()
        store.update("/t/a.jsonl", CheckpointRecord(last_hash="ABC", last_size=7))
        store.save(path)
        data = json.loads(path.read_text())
        assert data["/t/a.jsonl"]["last_hash"] == "ABC"
        assert data["/t/a.jsonl"]["last_size"] == 7
        assert "last_entry_at" in data["/t/a.jsonl"]

    def test_missing_file_is_ok(self, tmp_path):
        store = CheckpointStore()
        assert store.load(tmp_path / "absent.json").ok
        assert len(store) == 0

    def test_corrupt_file_means_nothing_seen(self, tmp_path):
        """A bad snapshot is reported and treated as an empty history."""
        path = tmp_path / "codex_state.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        store = CheckpointStore()
        store.update("k", CheckpointRecord(last_hash="ABC"))

        result = store.load(path)
        assert not result.ok
        assert len(store) == 0
        assert not store.is_duplicate("k", "ABC")

    def test_save_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "state" / "codex_state.json"
        store = CheckpointStore()
        store.update("k", CheckpointRecord(last_hash="ABC"))
        assert store.save(path).ok
        assert [p.name for p in path.parent.iterdir()] == ["codex_state.json"]
