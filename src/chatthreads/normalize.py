"""Normalize loosely shaped chat records into canonical Message models."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Mapping

from .config import CONTENT_FALLBACK_FIELDS, FINGERPRINT_LENGTH, NO_CONTENT
from .models import Message, Resource

logger = logging.getLogger(__name__)

_ROLE_SYNONYMS = {
    "user": "user",
    "assistant": "assistant",
    "ai": "assistant",
    "system": "system",
}

_TIMESTAMP_FIELDS = ("timestamp", "createdAt", "created_at", "create_time")


def _datetime_ms(value: datetime) -> float:
    """Epoch milliseconds for a datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp() * 1000


def _parse_date_string(text: str) -> float | None:
    try:
        number = float(text)
    except ValueError:
        pass
    else:
        return number if math.isfinite(number) else None

    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _datetime_ms(datetime.fromisoformat(iso))
    except ValueError:
        pass

    # RFC 2822, e.g. "Tue, 05 Mar 2024 10:00:00 +0000"
    try:
        return _datetime_ms(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def normalize_timestamp(value: Any) -> float | None:
    """Convert a timestamp-like value into comparable epoch milliseconds.

    Numbers pass through unchanged. Strings may be numeric, ISO-8601 or
    RFC 2822. Anything else, including NaN and infinities, yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, datetime):
        return _datetime_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _parse_date_string(text)
        except (OverflowError, OSError):
            return None
    return None


def _stringify_part(part: Any) -> str:
    if isinstance(part, str):
        return part.strip()
    if part is None:
        return ""
    try:
        return json.dumps(part, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(part)


def normalize_content(content: Any) -> str:
    """Flatten message content into a single stripped string.

    Sequences of parts are joined with spaces, mappings contribute their
    ``parts`` or ``text`` entry, and other scalars are stringified.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, (list, tuple)):
        parts = (_stringify_part(part) for part in content)
        return " ".join(part for part in parts if part).strip()
    if isinstance(content, Mapping):
        if "parts" in content:
            return normalize_content(content.get("parts"))
        if "text" in content:
            return normalize_content(content.get("text"))
        return _stringify_part(dict(content))
    return str(content).strip()


def content_fingerprint(message: Message | Mapping[str, Any]) -> str:
    """Short deterministic digest of a message's content for identity keys."""
    if isinstance(message, Message):
        content = message.content
    elif isinstance(message, Mapping):
        content = message.get("content")
    else:
        content = None

    text = normalize_content(content)
    if not text:
        return NO_CONTENT
    return text[:FINGERPRINT_LENGTH]


def normalize_role(record: Mapping[str, Any]) -> str | None:
    for field in ("role", "type"):
        value = record.get(field)
        if isinstance(value, str) and value.lower() in _ROLE_SYNONYMS:
            return _ROLE_SYNONYMS[value.lower()]
    return None


def _opt_str(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _first_str(record: Mapping[str, Any], *fields: str) -> str | None:
    for field in fields:
        value = _opt_str(record.get(field))
        if value:
            return value
    return None


def _nested_id(record: Mapping[str, Any], field: str) -> str | None:
    nested = record.get(field)
    if isinstance(nested, Mapping):
        return _opt_str(nested.get("id"))
    return None


def _flag(record: Mapping[str, Any], camel: str) -> bool:
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in camel)
    return bool(record.get(camel, record.get(snake)))


def _extract_content(record: Mapping[str, Any]) -> str:
    text = normalize_content(record.get("content"))
    if text:
        return text

    for field in CONTENT_FALLBACK_FIELDS:
        text = normalize_content(record.get(field))
        if text:
            return text
    return ""


def _extract_timestamp(record: Mapping[str, Any]) -> float | int | str | None:
    for field in _TIMESTAMP_FIELDS:
        value = record.get(field)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            return str(value)
        if isinstance(value, (int, float, str)):
            return value
        if isinstance(value, datetime):
            return _datetime_ms(value)
        return str(value)
    return None


def _extract_resources(raw: Any) -> list[Resource]:
    if not isinstance(raw, (list, tuple)):
        return []

    resources: list[Resource] = []
    for item in raw:
        if isinstance(item, Resource):
            resources.append(item)
        elif isinstance(item, Mapping):
            resources.append(
                Resource(
                    id=_opt_str(item.get("id")),
                    url=_opt_str(item.get("url")),
                    title=_opt_str(item.get("title")),
                    type=_opt_str(item.get("type")),
                )
            )
    return resources


def normalize_message(
    record: Any,
    *,
    is_current: bool | None = None,
    is_stored: bool | None = None,
) -> Message | None:
    """Turn one message-like record into a canonical Message.

    Returns None when the record is not a mapping or has no usable role or
    content. Provenance flags default to the record's own values unless
    overridden.
    """
    if isinstance(record, Message):
        if not record.content.strip():
            logger.debug("Skipping message %r with empty content", record.id)
            return None
        updates = {}
        if is_current is not None:
            updates["is_current"] = is_current
        if is_stored is not None:
            updates["is_stored"] = is_stored
        return record.model_copy(update=updates) if updates else record

    if not isinstance(record, Mapping):
        logger.debug("Skipping non-mapping message record: %r", type(record).__name__)
        return None

    role = normalize_role(record)
    if role is None:
        logger.debug("Skipping message %r with no usable role", record.get("id"))
        return None

    content = _extract_content(record)
    if not content:
        logger.debug("Skipping message %r with empty content", record.get("id"))
        return None

    metadata = record.get("metadata")
    metadata = dict(metadata) if isinstance(metadata, Mapping) else {}

    return Message(
        id=_opt_str(record.get("id")),
        role=role,
        content=content,
        timestamp=_extract_timestamp(record),
        thread_id=_first_str(record, "threadId", "thread_id"),
        conversation_thread_id=_first_str(
            record, "conversationThreadId", "conversation_thread_id"
        ),
        conversation_id=_first_str(record, "conversationId", "conversation_id"),
        conversation_ref=_nested_id(record, "conversation"),
        parent_conversation_id=_first_str(
            record, "parentConversationId", "parent_conversation_id"
        ),
        session_id=_first_str(record, "sessionId", "session_id") or _nested_id(record, "session"),
        metadata=metadata,
        resources=_extract_resources(record.get("resources")),
        is_current=_flag(record, "isCurrent") if is_current is None else is_current,
        is_stored=_flag(record, "isStored") if is_stored is None else is_stored,
        is_resource=_flag(record, "isResource"),
        is_study_notes=_flag(record, "isStudyNotes"),
        is_local_only=_flag(record, "isLocalOnly"),
    )


def normalize_messages(
    records: Iterable[Any] | None,
    *,
    is_current: bool | None = None,
    is_stored: bool | None = None,
) -> list[Message]:
    """Normalize a batch, dropping records that cannot be repaired."""
    if records is None:
        return []
    if isinstance(records, (str, bytes, Mapping)):
        logger.warning("Expected a sequence of messages, got %s", type(records).__name__)
        return []

    messages: list[Message] = []
    for record in records:
        message = normalize_message(record, is_current=is_current, is_stored=is_stored)
        if message is not None:
            messages.append(message)
    return messages
