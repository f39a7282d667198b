"""Hook payload decoding: stdin JSON → :class:`HookInput`.

Each CLI tool sends its own hook payload shape, and the shapes drift between
releases. Keys are looked up in both snake_case and camelCase, and for
tools that hand over the answer inline (no transcript) several nested
layouts are probed.
"""

from __future__ import annotations

import json
from typing import Any

from turnlog.core.errors import PayloadError
from turnlog.core.models import HookInput
from turnlog.ingest.extractor import (
    Role,
    detect_role,
    dig,
    extract_text,
    last_user_text,
    node_text,
)

_SESSION_KEYS = (
    "session_id",
    "sessionId",
    "conversation_id",
    "conversationId",
    "thread_id",
    "threadId",
    "chat_id",
    "chatId",
)
_TRANSCRIPT_KEYS = ("transcript_path", "transcriptPath")
_EVENT_KEYS = ("hook_event_name", "hookEventName")

_QUESTION_KEYS = ("question", "prompt", "input", "input_text", "user_input", "query", "user")
_RESPONSE_KEYS = (
    "response",
    "answer",
    "output",
    "assistant",
    "model_response",
    "completion",
    "llm_response",
    "llmResponse",
)
_CHUNK_KEYS = ("chunk_text", "chunkText", "chunk")
_FINAL_KEYS = ("is_final", "isFinal", "final")
_MESSAGE_ARRAY_KEYS = ("messages", "turns", "history", "conversation", "chat", "entries")


def decode_hook_payload(raw: str) -> HookInput:
    """Decode one hook payload.

    Raises:
        PayloadError: if ``raw`` is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PayloadError(f"Hook payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PayloadError(f"Hook payload must be a JSON object, got {type(data).__name__}")

    hook = HookInput(
        session_id=_session_id(data),
        transcript_path=_first_string(data, _TRANSCRIPT_KEYS),
        hook_event_name=_first_string(data, _EVENT_KEYS),
    )

    if hook.hook_event_name and hook.hook_event_name.lower() == "aftermodel":
        hook.question = _first_string(data, ("question",)) or _request_question(data)
        hook.chunk_text = _first_raw_string(data, _CHUNK_KEYS) or _response_text(data)
        hook.is_final = _first_bool(data, _FINAL_KEYS) or _has_finish_reason(data)
        return hook

    chunk = _first_raw_string(data, _CHUNK_KEYS)
    final = _first_bool(data, _FINAL_KEYS)
    if chunk is not None or final:
        hook.question = _first_string(data, ("question",))
        hook.chunk_text = chunk
        hook.is_final = final
        return hook

    hook.question, hook.response = _inline_pair(data)
    return hook


def _first_string(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    """First non-blank text found under any of ``keys``, stripped."""
    for key in keys:
        if key in data:
            text = extract_text(data[key])
            if text is not None:
                return text.strip()
    return None


def _first_raw_string(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    # Chunks keep their whitespace: "Hel" + "lo world" must not lose the space
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return None


def _first_bool(data: dict[str, Any], keys: tuple[str, ...]) -> bool:
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
    return False


def _session_id(data: dict[str, Any]) -> str | None:
    direct = _first_string(data, _SESSION_KEYS)
    if direct:
        return direct
    session = data.get("session")
    if isinstance(session, str) and session.strip():
        return session.strip()
    if isinstance(session, dict):
        return _first_string(session, ("id", "session_id", "sessionId"))
    return None


def _request_messages(data: dict[str, Any]) -> list[Any]:
    messages = dig(data, ("llm_request", "messages"))
    return messages if isinstance(messages, list) else []


def _request_question(data: dict[str, Any]) -> str | None:
    text = last_user_text(_request_messages(data))
    return text.strip() if text else None


def _candidates(llm_response: Any) -> list[Any]:
    if not isinstance(llm_response, dict):
        return []
    candidates = llm_response.get("candidates")
    if isinstance(candidates, list):
        return candidates
    candidate = llm_response.get("candidate")
    return [candidate] if candidate is not None else []


def _response_text(data: dict[str, Any]) -> str | None:
    """Text of the model response in an ``llm_response`` block, unstripped."""
    llm_response = data.get("llm_response", data.get("llmResponse"))
    if llm_response is None:
        return None
    if isinstance(llm_response, dict) and isinstance(llm_response.get("text"), str):
        return llm_response["text"]
    for candidate in _candidates(llm_response):
        text = extract_text(candidate.get("content")) if isinstance(candidate, dict) else None
        text = text or extract_text(candidate)
        if text is not None:
            return text
    return extract_text(llm_response)


def _has_finish_reason(data: dict[str, Any]) -> bool:
    llm_response = data.get("llm_response", data.get("llmResponse"))
    for candidate in _candidates(llm_response):
        if not isinstance(candidate, dict):
            continue
        reason = candidate.get("finishReason", candidate.get("finish_reason"))
        if isinstance(reason, str) and reason.strip():
            return True
    return False


def _inline_pair(data: dict[str, Any]) -> tuple[str | None, str | None]:
    """Question and response delivered inside the payload itself."""
    question = _first_string(data, _QUESTION_KEYS)
    response = _first_string(data, _RESPONSE_KEYS)
    if question and response:
        return question, response

    for key in _MESSAGE_ARRAY_KEYS:
        messages = data.get(key)
        if isinstance(messages, list):
            pair = _pair_from_messages(messages)
            if pair is not None:
                return pair

    request_question = _request_question(data)
    response_text = _response_text(data)
    if request_question and response_text and response_text.strip():
        return request_question, response_text.strip()

    return question, response


def _pair_from_messages(messages: list[Any]) -> tuple[str, str] | None:
    """Last user and last assistant text in a message list.

    Messages with no recognizable role still count: when no role is
    recognized at all, the final two texts are taken as question and answer.
    """
    last_user: str | None = None
    last_assistant: str | None = None
    unlabeled: list[str] = []

    for message in messages:
        text = node_text(message)
        if text is None:
            continue
        role = detect_role(message)
        if role is Role.USER:
            last_user = text
        elif role is Role.ASSISTANT:
            last_assistant = text
        else:
            unlabeled.append(text)

    if last_user and last_assistant:
        return last_user.strip(), last_assistant.strip()
    if len(unlabeled) >= 2:
        return unlabeled[-2].strip(), unlabeled[-1].strip()
    return None
