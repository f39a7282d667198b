"""Tests for session identity resolution."""

from __future__ import annotations

import hashlib
import uuid

from turnlog.ingest.identity import (
    deterministic_uuid,
    infer_session_hint,
    parse_uuid,
    resolve_session_id,
    uuid_from_filename,
    uuid_from_metadata,
)

SESSION = "0199a213-81c0-7800-8aa1-bbab2a035a53"
OTHER = "7d1f3c4e-2b6a-4c8d-9e0f-1a2b3c4d5e6f"


class TestParseUuid:
    def test_canonical_lowercase(self):
        assert parse_uuid(SESSION.upper()) == SESSION

    def test_rejects(self):
        assert parse_uuid("not-a-uuid") is None
        assert parse_uuid("") is None
        assert parse_uuid(None) is None
        assert parse_uuid(12) is None


class TestDeterministicUuid:
    def test_stable(self):
        assert deterministic_uuid("/t/a.jsonl") == deterministic_uuid("/t/a.jsonl")
        assert deterministic_uuid("/t/a.jsonl") != deterministic_uuid("/t/b.jsonl")

    def test_byte_layout(self):
        """First 16 digest bytes, laid out little-endian."""
        digest = hashlib.sha256(b"/t/a.jsonl").digest()
        assert deterministic_uuid("/t/a.jsonl") == str(uuid.UUID(bytes_le=digest[:16]))


class TestFromFilename:
    def test_whole_stem(self, tmp_path):
        assert uuid_from_filename(tmp_path / f"{SESSION}.jsonl") == SESSION

    def test_codex_rollout_name(self, tmp_path):
        path = tmp_path / f"rollout-2025-10-01T10-20-30-{SESSION}.jsonl"
        assert uuid_from_filename(path) == SESSION

    def test_no_uuid(self, tmp_path):
        assert uuid_from_filename(tmp_path / "session.jsonl") is None
        assert uuid_from_filename(tmp_path / "a-b-c-d-e.jsonl") is None


class TestFromMetadata:
    def test_session_meta_payload(self):
        nodes = [{"type": "session_meta", "payload": {"id": SESSION}}]
        assert uuid_from_metadata(nodes) == SESSION

    def test_session_id_keys(self):
        assert uuid_from_metadata([{"sessionId": SESSION}]) == SESSION
        assert uuid_from_metadata([{"x": 1}, {"session_id": SESSION}]) == SESSION

    def test_only_head_nodes_searched(self):
        nodes = [{"n": i} for i in range(5)] + [{"sessionId": SESSION}]
        assert uuid_from_metadata(nodes) is None


class TestResolveSessionId:
    def test_candidate_wins(self, tmp_path):
        path = tmp_path / f"{OTHER}.jsonl"
        assert resolve_session_id(SESSION, path, [{"sessionId": OTHER}]) == SESSION

    def test_filename_before_metadata(self, tmp_path):
        path = tmp_path / f"{SESSION}.jsonl"
        assert resolve_session_id("not-a-uuid", path, [{"sessionId": OTHER}]) == SESSION

    def test_metadata(self, tmp_path):
        path = tmp_path / "session.jsonl"
        assert resolve_session_id(None, path, [{"type": "session_meta", "payload": {"id": SESSION}}]) == SESSION

    def test_path_digest_is_stable(self, tmp_path):
        """With nothing embedded, the same path always yields the same id."""
        path = tmp_path / "session.jsonl"
        first = resolve_session_id(None, path, [])
        assert first == resolve_session_id("garbage", path, [{"n": 1}])
        assert first == deterministic_uuid(str(path))
        assert parse_uuid(first) == first

    def test_no_path_hashes_candidate(self):
        assert resolve_session_id("chat-42", None) == deterministic_uuid("chat-42")


class TestInferSessionHint:
    def test_uuid_from_name(self, tmp_path):
        assert infer_session_hint(tmp_path / f"rollout-x-{SESSION}.jsonl") == SESSION

    def test_falls_back_to_stem(self, tmp_path):
        assert infer_session_hint(tmp_path / "notes.jsonl") == "notes"
