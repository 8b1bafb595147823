"""Fold conversation cards into threads."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from .models import ConversationCard, Resource, Thread
from .normalize import normalize_timestamp

logger = logging.getLogger(__name__)


def _resource_keys(resource: Resource) -> list[str]:
    keys = []
    if resource.id:
        keys.append(f"id:{resource.id}")
    if resource.url:
        keys.append(f"url:{resource.url}")
    if resource.title:
        keys.append(f"title:{resource.title}")
    return keys


def merge_resources(*groups: Iterable[Resource]) -> list[Resource]:
    """Concatenate resource lists, dropping any resource that shares an id,
    url or title with one already kept. First occurrence wins."""
    merged: list[Resource] = []
    seen: set[str] = set()

    for group in groups:
        for resource in group or []:
            if resource is None:
                continue
            keys = _resource_keys(resource)
            if any(key in seen for key in keys):
                continue
            merged.append(resource)
            seen.update(keys)

    return merged


def card_timestamp(card: ConversationCard) -> float | None:
    """The card's own time, falling back to its assistant then user message."""
    for candidate in (
        card.timestamp,
        card.original_ai_message.timestamp if card.original_ai_message else None,
        card.original_user_message.timestamp if card.original_user_message else None,
    ):
        value = normalize_timestamp(candidate)
        if value is not None:
            return value
    return None


def _coerce_card(item: Any) -> ConversationCard | None:
    if isinstance(item, ConversationCard):
        card = item
    elif isinstance(item, dict):
        try:
            card = ConversationCard.model_validate(item)
        except ValidationError:
            logger.warning("Skipping malformed conversation card %r", item.get("id"))
            return None
    else:
        logger.warning("Skipping non-card entry of type %s", type(item).__name__)
        return None

    if not card.id:
        logger.warning("Skipping conversation card without an id")
        return None
    if not card.user_content and not card.ai_content:
        logger.warning("Skipping conversation card %s without content", card.id)
        return None
    return card


def _thread_key(card: ConversationCard) -> str:
    return card.thread_id or card.conversation_id or card.id


def _flags(cards: list[ConversationCard]) -> tuple[bool, bool]:
    is_current = False
    is_stored = False
    for card in cards:
        originals = [m for m in (card.original_user_message, card.original_ai_message) if m]
        is_current = is_current or card.is_current or any(m.is_current for m in originals)
        is_stored = is_stored or card.is_stored or any(m.is_stored for m in originals)
    return is_current, is_stored


def _time_key(value: float | None) -> tuple[bool, float]:
    return (value is not None, value if value is not None else 0.0)


def _latest_card(cards: list[ConversationCard]) -> ConversationCard:
    # Latest valid timestamp wins; ties and missing times go to the later arrival.
    latest = cards[-1]
    latest_time: float | None = None
    for card in cards:
        value = card_timestamp(card)
        if value is None:
            continue
        if latest_time is None or value >= latest_time:
            latest, latest_time = card, value
    return latest


def _build_thread(thread_id: str, cards: list[ConversationCard]) -> Thread:
    latest = _latest_card(cards)
    # Missing timestamps sort first.
    ordered = sorted(cards, key=lambda c: _time_key(card_timestamp(c)))
    is_current, is_stored = _flags(cards)

    return Thread(
        id=thread_id,
        thread_id=latest.thread_id or thread_id,
        conversation_id=latest.conversation_id or thread_id,
        user_content=latest.user_content,
        ai_content=latest.ai_content,
        timestamp=latest.timestamp,
        resources=merge_resources(*(card.resources for card in cards)),
        conversation_count=len(cards),
        thread_messages=ordered,
        is_current=is_current,
        is_stored=is_stored,
    )


def thread_timestamp(thread: Thread) -> float | None:
    value = normalize_timestamp(thread.timestamp)
    if value is not None:
        return value
    times = [card_timestamp(card) for card in thread.thread_messages]
    valid = [t for t in times if t is not None]
    return max(valid) if valid else None


def aggregate_threads(cards: Iterable[Any]) -> list[Thread]:
    """Group conversation cards into threads, newest thread first.

    Cards sharing a thread id form one thread; cards without any grouping id
    form a thread of their own. Malformed cards are skipped with a warning.
    """
    groups: dict[str, dict[str, ConversationCard]] = {}

    for item in cards or []:
        card = _coerce_card(item)
        if card is None:
            continue
        # A repeated card id replaces the earlier copy.
        groups.setdefault(_thread_key(card), {})[card.id] = card

    threads = [_build_thread(key, list(group.values())) for key, group in groups.items()]

    # Newest first; threads without any valid time go last.
    return sorted(threads, key=lambda t: _time_key(thread_timestamp(t)), reverse=True)
