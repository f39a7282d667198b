"""Session identity: derive a stable session UUID for a transcript.

The sink keys sessions by UUID. Resolution order:

1. an authoritative id from the hook payload, if it is a UUID
2. a UUID in the transcript filename (whole stem, or its trailing five
   dash groups as in Codex ``rollout-<timestamp>-<uuid>.jsonl``)
3. a UUID in a metadata node near the top of the transcript
4. a UUID derived from a SHA-256 of the transcript path
"""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Sequence
from pathlib import Path

from turnlog.core.models import TranscriptNode
from turnlog.ingest.extractor import dig

HEAD_NODE_LIMIT = 5

_META_PROBES: tuple[tuple[str, ...], ...] = (
    ("sessionId",),
    ("session_id",),
)


def parse_uuid(value: object) -> str | None:
    """Canonical lowercase form of ``value`` if it is a UUID, else None."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        return None


def deterministic_uuid(text: str) -> str:
    """UUID built from the first 16 bytes of SHA-256(text).

    The bytes are laid out little-endian (``bytes_le``) so ids match those
    already stored by earlier hook builds.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return str(uuid.UUID(bytes_le=digest[:16]))


def uuid_from_filename(path: str | Path) -> str | None:
    stem = Path(path).stem
    found = parse_uuid(stem)
    if found:
        return found
    tokens = stem.split("-")
    if len(tokens) >= 5:
        return parse_uuid("-".join(tokens[-5:]))
    return None


def uuid_from_metadata(head_nodes: Sequence[TranscriptNode]) -> str | None:
    for node in head_nodes[:HEAD_NODE_LIMIT]:
        if not isinstance(node, dict):
            continue
        if node.get("type") == "session_meta":
            found = parse_uuid(dig(node, ("payload", "id")))
            if found:
                return found
        for probe in _META_PROBES:
            found = parse_uuid(dig(node, probe))
            if found:
                return found
    return None


def infer_session_hint(path: str | Path) -> str:
    """Best candidate id visible from the path alone (the watcher's hint)."""
    return uuid_from_filename(path) or Path(path).stem


def resolve_session_id(
    candidate_id: str | None,
    transcript_path: str | Path | None,
    head_nodes: Sequence[TranscriptNode] = (),
) -> str:
    """Return a stable session UUID.

    With no usable ``candidate_id`` and nothing embedded in the transcript,
    the same ``transcript_path`` always yields the same id. Without a path
    either, the candidate itself is hashed.
    """
    found = parse_uuid(candidate_id)
    if found:
        return found

    if transcript_path is not None:
        found = uuid_from_filename(transcript_path) or uuid_from_metadata(head_nodes)
        if found:
            return found
        return deterministic_uuid(str(transcript_path))

    return deterministic_uuid(candidate_id or "")
