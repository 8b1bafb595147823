"""Helpers over thread-stamped messages: chat history, filtering and stats."""

from __future__ import annotations

import time
from typing import Any, Iterable

from .config import GAP_THRESHOLD_MS, INCLUDED_ROLES, MESSAGE_HISTORY_DAYS
from .models import ChatTurn, ConversationCard, Message
from .normalize import normalize_message, normalize_timestamp
from .pairing import pair_messages
from .pipeline import format_iso
from .threads import resolve_thread_ids


def _as_messages(messages: Iterable[Any] | None) -> list[Message]:
    if not messages:
        return []
    normalized = (normalize_message(m) for m in messages)
    return [m for m in normalized if m is not None]


def build_chat_history(messages: Iterable[Any] | None) -> list[ChatTurn]:
    """Role/content transcript for a completion request.

    Keeps user and assistant turns only, and drops resource, study-note and
    local-only messages as well as anything empty after trimming.
    """
    history: list[ChatTurn] = []
    for msg in _as_messages(messages):
        if msg.role not in INCLUDED_ROLES:
            continue
        if msg.is_resource or msg.is_study_notes or msg.is_local_only:
            continue
        content = msg.content.strip()
        if not content:
            continue
        history.append(ChatTurn(role=msg.role, content=content))
    return history


def filter_recent(
    messages: Iterable[Any] | None,
    days: float = MESSAGE_HISTORY_DAYS,
    now: float | None = None,
) -> list[Message]:
    """Messages whose timestamp falls within the last ``days`` days.

    ``now`` is epoch milliseconds and defaults to the current time.
    """
    if now is None:
        now = time.time() * 1000
    cutoff = now - days * 24 * 60 * 60 * 1000

    recent = []
    for msg in _as_messages(messages):
        ts = normalize_timestamp(msg.timestamp)
        if ts is not None and ts >= cutoff:
            recent.append(msg)
    return recent


def search_messages(messages: Iterable[Any] | None, term: str | None) -> list[Message]:
    """Case-insensitive substring search over message content."""
    msgs = _as_messages(messages)
    if not term or not term.strip():
        return msgs
    needle = term.strip().lower()
    return [m for m in msgs if needle in m.content.lower()]


def find_by_keywords(messages: Iterable[Any] | None, keywords: Iterable[str] | None) -> list[Message]:
    """Messages whose content contains any of ``keywords``, case-insensitively."""
    needles = [k.lower() for k in keywords or () if k and k.strip()]
    if not needles:
        return []
    return [m for m in _as_messages(messages) if any(n in m.content.lower() for n in needles)]


def split_by_provenance(
    cards: Iterable[ConversationCard],
) -> tuple[list[ConversationCard], list[ConversationCard]]:
    """Split cards into (current, stored); anything not current counts as stored."""
    current: list[ConversationCard] = []
    stored: list[ConversationCard] = []
    for card in cards:
        (current if card.is_current else stored).append(card)
    return current, stored


def message_stats(
    messages: Iterable[Any] | None,
    gap_threshold: float = GAP_THRESHOLD_MS,
) -> dict:
    """Counts by role and provenance, plus time range and content length."""
    msgs = _as_messages(messages)
    timestamps = [t for t in (normalize_timestamp(m.timestamp) for m in msgs) if t is not None]
    thread_ids = {t for t in resolve_thread_ids(msgs, gap_threshold) if t}
    total_length = sum(len(m.content) for m in msgs)

    return {
        "total_messages": len(msgs),
        "user_messages": sum(1 for m in msgs if m.role == "user"),
        "assistant_messages": sum(1 for m in msgs if m.role == "assistant"),
        "study_notes": sum(1 for m in msgs if m.is_study_notes),
        "with_resources": sum(1 for m in msgs if m.resources),
        "conversations": len(pair_messages(msgs)),
        "threads": len(thread_ids),
        "current_session": sum(1 for m in msgs if m.is_current),
        "stored": sum(1 for m in msgs if m.is_stored),
        "oldest_message": format_iso(min(timestamps)) if timestamps else None,
        "newest_message": format_iso(max(timestamps)) if timestamps else None,
        "total_content_length": total_length,
        "average_content_length": round(total_length / len(msgs)) if msgs else 0,
    }
