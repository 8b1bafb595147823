"""Union current-session and stored messages into one thread-stamped sequence."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from .config import GAP_THRESHOLD_MS, NO_CONVERSATION, NO_TIMESTAMP
from .models import Message
from .normalize import content_fingerprint, normalize_messages, normalize_timestamp
from .threads import grouping_hint, resolve_thread_ids

logger = logging.getLogger(__name__)


def identity_key(message: Message) -> str:
    """Key under which two records count as the same message.

    The message id when present, otherwise grouping hint, timestamp, role
    and content fingerprint joined with ``|``.
    """
    if message.id:
        return message.id

    timestamp = normalize_timestamp(message.timestamp)
    if timestamp is not None:
        time_part = str(int(timestamp)) if timestamp.is_integer() else repr(timestamp)
    elif message.timestamp is not None and str(message.timestamp).strip():
        time_part = str(message.timestamp)
    else:
        time_part = NO_TIMESTAMP

    return "|".join(
        (
            grouping_hint(message) or NO_CONVERSATION,
            time_part,
            message.role,
            content_fingerprint(message),
        )
    )


def _sort_key(message: Message) -> tuple[int, float]:
    timestamp = normalize_timestamp(message.timestamp)
    if timestamp is None:
        return (1, 0.0)
    return (0, timestamp)


def _has_timestamp(message: Message) -> bool:
    return message.timestamp is not None and str(message.timestamp).strip() != ""


def stamp_thread_ids(
    messages: list[Message],
    gap_threshold: float = GAP_THRESHOLD_MS,
) -> list[Message]:
    """Copy each message with its resolved thread id filled in."""
    assignments = resolve_thread_ids(messages, gap_threshold)
    stamped: list[Message] = []

    for message, thread_id in zip(messages, assignments):
        stamped.append(
            message.model_copy(
                update={
                    "thread_id": thread_id,
                    "conversation_thread_id": message.conversation_thread_id or thread_id,
                    "conversation_id": message.conversation_id or thread_id,
                }
            )
        )
    return stamped


def merge_messages(
    current_messages: Iterable[Any] | None,
    stored_messages: Iterable[Any] | None,
    gap_threshold: float = GAP_THRESHOLD_MS,
) -> list[Message]:
    """Merge current and stored messages into a deduplicated, ordered list.

    Stored records are inserted first, then current ones. A record whose
    identity key was already seen takes the newer field values while the
    provenance flags of both are OR-combined. Records without a timestamp
    are dropped; the rest are sorted by time (unparseable timestamps last)
    and stamped with thread ids.
    """
    merged: dict[str, Message] = {}

    stored = normalize_messages(stored_messages, is_current=False, is_stored=True)
    current = normalize_messages(current_messages, is_current=True, is_stored=False)

    for message in stored + current:
        key = identity_key(message)
        existing = merged.get(key)
        if existing is None:
            merged[key] = message
            continue

        merged[key] = message.model_copy(
            update={
                "is_current": existing.is_current or message.is_current,
                "is_stored": existing.is_stored or message.is_stored,
            }
        )

    survivors = [message for message in merged.values() if _has_timestamp(message)]
    dropped = len(merged) - len(survivors)
    if dropped:
        logger.debug("Dropped %d merged messages without a timestamp", dropped)

    ordered = sorted(survivors, key=_sort_key)

    logger.debug(
        "Merged %d stored and %d current messages into %d",
        len(stored),
        len(current),
        len(ordered),
    )
    return stamp_thread_ids(ordered, gap_threshold)
