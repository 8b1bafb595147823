"""End-to-end passes: messages in, threads or storage snapshots out."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from .aggregate import aggregate_threads, card_timestamp
from .config import GAP_THRESHOLD_MS
from .merge import merge_messages
from .models import Thread, ThreadSnapshot
from .pairing import pair_messages


def build_threads(
    current_messages: Iterable[Any] | None,
    stored_messages: Iterable[Any] | None,
    gap_threshold: float = GAP_THRESHOLD_MS,
    limit: int | None = None,
) -> list[Thread]:
    """Merge, pair and aggregate in one pass. Returns newest threads first,
    capped at ``limit`` when given."""
    merged = merge_messages(current_messages, stored_messages, gap_threshold)
    threads = aggregate_threads(pair_messages(merged))
    if limit is not None:
        threads = threads[: max(0, limit)]
    return threads


def filter_threads(threads: Iterable[Thread], keyword: str | None) -> list[Thread]:
    """Threads with a card whose question or answer contains ``keyword``.

    Runs on already-built threads so ids stay the same as the unfiltered
    listing.
    """
    threads = list(threads)
    if not keyword or not keyword.strip():
        return threads
    needle = keyword.strip().lower()
    return [
        t
        for t in threads
        if any(
            needle in (card.user_content or "").lower() or needle in (card.ai_content or "").lower()
            for card in t.thread_messages
        )
    ]


def format_iso(value: float | None) -> str | None:
    """Epoch milliseconds to an ISO-8601 UTC string."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def snapshot_threads(
    messages: Iterable[Any] | None,
    gap_threshold: float = GAP_THRESHOLD_MS,
) -> list[ThreadSnapshot]:
    """Thread summaries written alongside stored messages.

    Each snapshot carries the thread's cards, the first and last card times
    and its counts, newest thread first.
    """
    threads = build_threads([], messages, gap_threshold)
    snapshots: list[ThreadSnapshot] = []

    for thread in threads:
        cards = thread.thread_messages
        first = card_timestamp(cards[0]) if cards else None
        last = card_timestamp(cards[-1]) if cards else None
        snapshots.append(
            ThreadSnapshot(
                id=thread.thread_id or thread.conversation_id or thread.id,
                thread_id=thread.thread_id or thread.id,
                conversation_id=thread.conversation_id or thread.id,
                conversation_count=thread.conversation_count or len(cards),
                message_count=sum(
                    (card.original_user_message is not None)
                    + (card.original_ai_message is not None)
                    for card in cards
                ),
                resources=thread.resources,
                messages=cards,
                first_timestamp=format_iso(first),
                last_timestamp=format_iso(last),
                is_current=thread.is_current,
                is_stored=thread.is_stored,
            )
        )

    return snapshots
