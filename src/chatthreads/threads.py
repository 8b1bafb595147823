"""Assign a thread id to every message in an ordered sequence."""

from __future__ import annotations

from typing import Any, Sequence

from .config import GAP_THRESHOLD_MS
from .models import Message
from .normalize import normalize_timestamp

# Metadata keys consulted after the top-level grouping fields, in priority order.
_METADATA_THREAD_KEYS = (
    "threadId",
    "thread_id",
    "conversationThreadId",
    "conversation_thread_id",
    "conversationId",
    "conversation_id",
)
_METADATA_SESSION_KEYS = ("sessionId", "session_id")


def _metadata_value(message: Message, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = message.metadata.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return str(value)
    return None


def grouping_hint(message: Message) -> str | None:
    """The explicit thread/conversation id carried by a message, if any."""
    return (
        message.thread_id
        or message.conversation_thread_id
        or message.conversation_id
        or message.conversation_ref
        or message.parent_conversation_id
        or _metadata_value(message, _METADATA_THREAD_KEYS)
    )


def session_hint(message: Message) -> str | None:
    return message.session_id or _metadata_value(message, _METADATA_SESSION_KEYS)


def _format_anchor(timestamp: float | None, index: int) -> str:
    if timestamp is None:
        return f"i{index}"
    if timestamp.is_integer():
        return str(int(timestamp))
    return repr(timestamp)


def resolve_thread_ids(
    messages: Sequence[Any],
    gap_threshold: float = GAP_THRESHOLD_MS,
) -> list[str | None]:
    """Return one thread id per entry of ``messages``.

    Explicit grouping hints win. Otherwise a message inherits the previous
    message's thread unless its session id changed or the gap since the
    previous message exceeds ``gap_threshold`` (milliseconds), in which case
    a new id is synthesized from its timestamp (or position) and its id (or a
    counter). An assistant message with an explicit id pulls the directly
    preceding hint-less user message into its thread.

    Entries that are not Messages inherit the previous id and leave the
    segmentation state untouched.
    """
    assignments: list[str | None] = []
    explicit: list[bool] = []

    previous_thread: str | None = None
    previous_timestamp: float | None = None
    previous_index: int | None = None
    last_session: str | None = None
    counter = 0

    for index, message in enumerate(messages):
        if not isinstance(message, Message):
            assignments.append(previous_thread)
            explicit.append(False)
            continue

        timestamp = normalize_timestamp(message.timestamp)
        session = session_hint(message)
        hint = grouping_hint(message)

        if hint:
            thread_id = hint
        else:
            starts_thread = previous_thread is None
            if session and last_session and session != last_session:
                starts_thread = True
            if (
                timestamp is not None
                and previous_timestamp is not None
                and timestamp - previous_timestamp > gap_threshold
            ):
                starts_thread = True

            if starts_thread:
                suffix = message.id
                if not suffix:
                    counter += 1
                    suffix = f"n{counter}"
                thread_id = f"thread-{_format_anchor(timestamp, index)}-{suffix}"
            else:
                thread_id = previous_thread

        if (
            hint
            and message.role == "assistant"
            and previous_index is not None
            and not explicit[previous_index]
            and messages[previous_index].role == "user"
            and assignments[previous_index] != thread_id
        ):
            assignments[previous_index] = thread_id

        assignments.append(thread_id)
        explicit.append(bool(hint))

        previous_thread = thread_id
        previous_timestamp = timestamp
        previous_index = index
        if session:
            last_session = session

    return assignments
