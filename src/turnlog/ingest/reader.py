"""Transcript reader: JSONL / JSON file → ordered list of parsed nodes.

Transcripts are read while the producing tool may still be appending to
them, so content problems are never fatal: a half-written trailing line is
simply skipped.
"""

from __future__ import annotations

import json
from pathlib import Path

from turnlog.core.models import TranscriptNode


def read_transcript(path: str | Path) -> list[TranscriptNode]:
    """Parse a transcript into nodes in file order (oldest first).

    Line-oriented first: every non-blank line that parses as JSON becomes a
    node. If no object line parses, the whole file is parsed as one JSON value and
    flattened: a top-level array contributes its elements, and an object
    with a ``messages`` array (Gemini CLI session files) contributes that
    array.

    Returns an empty list when the file cannot be opened.
    """
    text = _read_text(Path(path))
    if text is None:
        return []

    nodes = _parse_lines(text)
    # A pretty-printed document can yield stray scalar "lines"; only
    # object lines mark the file as real JSONL.
    if any(isinstance(node, dict) for node in nodes):
        return nodes
    return _parse_whole(text) or nodes


def read_head(path: str | Path, limit: int = 5) -> list[TranscriptNode]:
    """Return the first ``limit`` parsed nodes of a transcript."""
    return read_transcript(path)[:limit]


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def _parse_lines(text: str) -> list[TranscriptNode]:
    nodes: list[TranscriptNode] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            nodes.append(json.loads(line))
        except json.JSONDecodeError:
            # Partial line mid-write, or a pretty-printed document
            continue
    return nodes


def _parse_whole(text: str) -> list[TranscriptNode]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return []

    if isinstance(data, list):
        return list(data)
    if isinstance(data, dict) and isinstance(data.get("messages"), list):
        return list(data["messages"])
    return []
