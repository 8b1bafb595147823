"""Data models for messages, conversation cards and threads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system"]


class _Record(BaseModel):
    # Accept and emit the camelCase names used by the chat front end.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Resource(_Record):
    id: str | None = None
    url: str | None = None
    title: str | None = None
    type: str | None = None


class Message(_Record):
    id: str | None = None
    role: Role
    content: str
    timestamp: float | int | str | None = None
    thread_id: str | None = None
    conversation_thread_id: str | None = None
    conversation_id: str | None = None
    conversation_ref: str | None = None
    parent_conversation_id: str | None = None
    session_id: str | None = None
    metadata: dict[str, Any] = {}
    resources: list[Resource] = []
    is_current: bool = False
    is_stored: bool = False
    is_resource: bool = False
    is_study_notes: bool = False
    is_local_only: bool = False


class ConversationCard(_Record):
    id: str
    user_content: str | None = None
    ai_content: str | None = None
    timestamp: float | int | str | None = None
    resources: list[Resource] = []
    thread_id: str | None = None
    conversation_id: str | None = None
    is_current: bool = False
    is_stored: bool = False
    original_user_message: Message | None = None
    original_ai_message: Message | None = None


class Thread(_Record):
    id: str
    thread_id: str | None = None
    conversation_id: str | None = None
    user_content: str | None = None
    ai_content: str | None = None
    timestamp: float | int | str | None = None
    resources: list[Resource] = []
    conversation_count: int = 0
    thread_messages: list[ConversationCard] = []
    is_current: bool = False
    is_stored: bool = False


class ThreadSnapshot(_Record):
    id: str
    thread_id: str | None = None
    conversation_id: str | None = None
    conversation_count: int = 0
    message_count: int = 0
    resources: list[Resource] = []
    messages: list[ConversationCard] = []
    first_timestamp: str | None = None
    last_timestamp: str | None = None
    is_current: bool = False
    is_stored: bool = False


class ChatTurn(_Record):
    role: Literal["user", "assistant"]
    content: str
