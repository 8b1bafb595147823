"""Pair user and assistant messages into conversation cards."""

from __future__ import annotations

from typing import Any, Sequence

from .merge import identity_key
from .models import ConversationCard, Message


def _ref(message: Message) -> str:
    return message.id or identity_key(message)


def _paired_card(user_msg: Message, ai_msg: Message) -> ConversationCard:
    return ConversationCard(
        id=f"{_ref(user_msg)}-{_ref(ai_msg)}",
        user_content=user_msg.content,
        ai_content=ai_msg.content,
        timestamp=ai_msg.timestamp,
        resources=list(ai_msg.resources),
        thread_id=ai_msg.thread_id or user_msg.thread_id,
        conversation_id=ai_msg.conversation_id or user_msg.conversation_id,
        is_current=ai_msg.is_current or user_msg.is_current,
        # A half-synced pair is not durable yet.
        is_stored=ai_msg.is_stored and user_msg.is_stored,
        original_user_message=user_msg,
        original_ai_message=ai_msg,
    )


def _standalone_card(message: Message) -> ConversationCard:
    is_user = message.role == "user"
    return ConversationCard(
        id=_ref(message),
        user_content=message.content if is_user else None,
        ai_content=None if is_user else message.content,
        timestamp=message.timestamp,
        resources=[] if is_user else list(message.resources),
        thread_id=message.thread_id,
        conversation_id=message.conversation_id,
        is_current=message.is_current,
        is_stored=message.is_stored,
        original_user_message=message if is_user else None,
        original_ai_message=None if is_user else message,
    )


def pair_messages(messages: Sequence[Any]) -> list[ConversationCard]:
    """Group a time-ordered message list into conversation cards.

    A user message directly followed by an assistant message becomes one
    card. Any other user or assistant message becomes a standalone card
    (welcome messages take this path). System messages and entries that are
    not Messages produce no card.
    """
    cards: list[ConversationCard] = []
    i = 0

    while i < len(messages):
        msg = messages[i]

        if not isinstance(msg, Message) or msg.role == "system":
            i += 1
            continue

        if msg.role == "user":
            nxt = messages[i + 1] if i + 1 < len(messages) else None
            if isinstance(nxt, Message) and nxt.role == "assistant":
                cards.append(_paired_card(msg, nxt))
                i += 2
                continue

        cards.append(_standalone_card(msg))
        i += 1

    return cards
