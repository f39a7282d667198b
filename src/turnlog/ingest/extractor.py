"""Pair extractor: transcript nodes → the most recent completed exchange.

Transcript schemas differ across tools and across versions of the same
tool, so nothing here relies on a fixed record type. Role and text are
found by walking ordered lists of candidate key paths; the first path that
yields a usable value wins.

Shapes handled include:

- Claude Code: ``{"type": "user", "message": {"content": [{"type": "text", ...}]}}``
- Codex: ``{"type": "response_item", "payload": {"role": "assistant", "content": [...]}}``
  and ``{"type": "event_msg", "payload": {"type": "user_message", "message": "..."}}``
- Gemini CLI: ``{"type": "gemini", "content": "..."}``
- Legacy chat: ``{"role": "assistant", "content": "..."}``
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

from turnlog.core.models import MISSING_QUESTION, ConversationPair, TranscriptNode


class Role(Enum):
    UNKNOWN = "unknown"
    USER = "user"
    ASSISTANT = "assistant"


_USER_MARKERS = ("user", "human")
_ASSISTANT_MARKERS = ("assistant", "model", "bot", "gemini")

# Content block types that carry answer/prompt text. Blocks with any other
# declared type (tool_use, tool_result, thinking, ...) are skipped.
_TEXT_BLOCK_TYPES = frozenset({"text", "input_text", "output_text"})

_ROLE_PROBES: tuple[tuple[str, ...], ...] = (
    ("type",),
    ("role",),
    ("payload", "role"),
    ("message", "role"),
    ("author", "role"),
    ("author",),
    ("sender",),
)

_NODE_TEXT_PROBES: tuple[tuple[str, ...], ...] = (
    ("message",),
    ("payload", "content"),
    ("payload", "message"),
    ("content",),
    ("text",),
    ("parts",),
)

# Codex event stream: payload.type names the message kind
_EVENT_MESSAGE_ROLES = {
    "user_message": Role.USER,
    "agent_message": Role.ASSISTANT,
}


def dig(value: Any, path: Sequence[str]) -> Any:
    """Follow ``path`` through nested dicts; None when any step is missing."""
    current = value
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def normalize_role(value: Any) -> Role:
    """Map a free-form role/type string onto :class:`Role`."""
    if not isinstance(value, str):
        return Role.UNKNOWN
    lowered = value.strip().lower()
    if any(marker in lowered for marker in _USER_MARKERS):
        return Role.USER
    if any(marker in lowered for marker in _ASSISTANT_MARKERS):
        return Role.ASSISTANT
    return Role.UNKNOWN


def detect_role(node: TranscriptNode) -> Role:
    """Return the speaker of a transcript node."""
    if not isinstance(node, dict):
        return Role.UNKNOWN

    if node.get("type") == "event_msg":
        return _EVENT_MESSAGE_ROLES.get(dig(node, ("payload", "type")), Role.UNKNOWN)

    for probe in _ROLE_PROBES:
        role = normalize_role(dig(node, probe))
        if role is not Role.UNKNOWN:
            return role
    return Role.UNKNOWN


def extract_text(value: Any) -> str | None:
    """Pull readable text out of a content value of any supported shape.

    - a plain string
    - an array of blocks (strings, or objects carrying ``text``), joined
      with newlines
    - an object nesting ``text`` / ``parts`` / ``content``

    Whitespace-only results count as absent.
    """
    if isinstance(value, str):
        return value if value.strip() else None

    if isinstance(value, list):
        parts: list[str] = []
        for block in value:
            if isinstance(block, dict):
                block_type = block.get("type")
                if block_type is not None and block_type not in _TEXT_BLOCK_TYPES:
                    continue
            text = extract_text(block)
            if text is not None:
                parts.append(text)
        return "\n".join(parts) if parts else None

    if isinstance(value, dict):
        for key in ("text", "parts", "content"):
            if key in value:
                text = extract_text(value[key])
                if text is not None:
                    return text
    return None


def node_text(node: TranscriptNode) -> str | None:
    """Return the text carried by one transcript node."""
    if isinstance(node, str):
        return extract_text(node)
    for probe in _NODE_TEXT_PROBES:
        text = extract_text(dig(node, probe))
        if text is not None:
            return text
    return None


def extract_last_pair(nodes: Iterable[TranscriptNode]) -> ConversationPair | None:
    """Return the newest completed user → assistant exchange, or None.

    Scans newest to oldest. The question slot is only filled after a
    response has been found, so the question always precedes its answer.
    A response with no earlier question is kept with a placeholder
    question rather than dropped.
    """
    question: str | None = None
    response: str | None = None

    for node in reversed(list(nodes)):
        role = detect_role(node)
        if response is None:
            if role is Role.ASSISTANT:
                response = node_text(node)
        elif question is None:
            if role is Role.USER:
                question = node_text(node)

        if question is not None and response is not None:
            break

    if response is None:
        return None
    if question is None:
        question = MISSING_QUESTION
    return ConversationPair(question=question.strip(), response=response.strip())


def last_user_text(messages: Iterable[Any]) -> str | None:
    """Return the text of the newest user message in a message list."""
    for message in reversed(list(messages)):
        if detect_role(message) is Role.USER:
            text = node_text(message)
            if text is not None:
                return text
    return None
