"""Read message payloads in the shapes a message store hands back."""

from __future__ import annotations

import logging
from typing import Any

from .models import Message
from .normalize import normalize_messages

logger = logging.getLogger(__name__)


def _is_version_record(record: Any) -> bool:
    return isinstance(record, dict) and list(record.keys()) == ["version"]


def _flatten_threads(threads: list[Any]) -> list[Any]:
    """Push each stored thread's id down onto its messages."""
    records: list[Any] = []
    for thread in threads:
        if not isinstance(thread, dict):
            continue
        thread_id = thread.get("id") or thread.get("threadId") or thread.get("thread_id")
        for msg in thread.get("messages") or []:
            if not isinstance(msg, dict):
                records.append(msg)
                continue
            record = dict(msg)
            if thread_id:
                record["threadId"] = (
                    msg.get("threadId") or msg.get("conversationThreadId") or thread_id
                )
                record["conversationThreadId"] = (
                    msg.get("conversationThreadId") or msg.get("threadId") or thread_id
                )
                record["conversationId"] = msg.get("conversationId") or thread_id
            records.append(record)
    return records


def extract_records(data: Any) -> list[Any]:
    """Raw message records from a bare list, ``{"messages": [...]}`` or
    ``{"threads": [...]}`` payload. Unknown shapes yield an empty list."""
    if isinstance(data, list):
        records = data
    elif isinstance(data, dict) and isinstance(data.get("threads"), list):
        records = _flatten_threads(data["threads"])
    elif isinstance(data, dict) and isinstance(data.get("messages"), list):
        records = data["messages"]
    else:
        logger.warning("Unknown message payload shape: %s", type(data).__name__)
        return []

    return [r for r in records if not _is_version_record(r)]


def load_stored_payload(data: Any) -> list[Message]:
    """Messages from a stored payload, flagged as stored."""
    records = extract_records(data)
    messages = normalize_messages(records, is_current=False, is_stored=True)
    if len(messages) < len(records):
        logger.info("Loaded %d of %d stored messages", len(messages), len(records))
    return messages


def load_current_payload(data: Any) -> list[Message]:
    """Messages from the live session buffer, flagged as current."""
    return normalize_messages(extract_records(data), is_current=True, is_stored=False)
