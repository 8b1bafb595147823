"""FastMCP server exposing merged conversation threads."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from mcp.server.fastmcp import FastMCP

from . import config
from .aggregate import card_timestamp, thread_timestamp
from .history import build_chat_history, message_stats
from .loader import load_current_payload, load_stored_payload
from .merge import merge_messages
from .models import Message
from .pipeline import build_threads, filter_threads

# Logging to stderr only — stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)

mcp = FastMCP(
    "chatthreads",
    instructions=(
        "Browse the user's chat history grouped into conversation threads. "
        "Use list_threads to see recent threads, get_thread to read one, "
        "get_chat_history for a role/content transcript and get_stats for totals. "
        "Pass the live session's messages as a JSON array in current_messages "
        "to merge them with the stored history."
    ),
)


class _InputError(Exception):
    pass


def _format_ts(ts: float | None) -> str:
    if ts is None:
        return "Unknown date"
    try:
        return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return "Unknown date"


def _check_data_exists() -> str | None:
    """Return an error message if there is no stored message file."""
    if not config.STORE_PATH.exists():
        return (
            f"No stored messages found at {config.STORE_PATH}. "
            "Set CHATTHREADS_DATA_DIR to the directory holding messages.json."
        )
    return None


def _load_inputs(current_messages: str) -> tuple[list[Message], list[Message]]:
    try:
        stored_data = json.loads(config.STORE_PATH.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise _InputError(f"Stored messages file is not valid JSON: {exc.msg}")

    current_data = []
    if current_messages and current_messages.strip():
        try:
            current_data = json.loads(current_messages)
        except json.JSONDecodeError as exc:
            raise _InputError(f"current_messages is not valid JSON: {exc.msg}")

    return load_current_payload(current_data), load_stored_payload(stored_data)


@mcp.tool()
def list_threads(
    current_messages: str = "",
    limit: int = config.MAX_DISPLAYED_THREADS,
    keyword: str | None = None,
) -> str:
    """List the most recent conversation threads.

    Args:
        current_messages: Optional JSON array of the live session's messages
        limit: Maximum number of threads (default 10)
        keyword: Optional text a thread's question or answer must contain
    """
    err = _check_data_exists()
    if err:
        return err

    try:
        current, stored = _load_inputs(current_messages)
    except _InputError as exc:
        return str(exc)

    threads = filter_threads(build_threads(current, stored, config.GAP_THRESHOLD_MS), keyword)
    threads = threads[: max(1, limit)]

    if not threads:
        if keyword:
            return f"No threads found matching '{keyword}'."
        return "No threads found."

    lines = [f"Threads (showing {len(threads)}):\n"]
    for i, thread in enumerate(threads, 1):
        question = (thread.user_content or thread.ai_content or "").replace("\n", " ")[:150]
        lines.append(f"{i}. **{question or 'Untitled'}**")
        lines.append(
            f"   ID: `{thread.id}` | {thread.conversation_count} conversations | "
            f"Last: {_format_ts(thread_timestamp(thread))}"
        )
        if thread.resources:
            lines.append(f"   Resources: {len(thread.resources)}")
        lines.append("")

    lines.append("Use get_thread(thread_id) to read the full thread.")
    return "\n".join(lines)


@mcp.tool()
def get_thread(thread_id: str, current_messages: str = "") -> str:
    """Retrieve every conversation in a thread.

    Args:
        thread_id: The thread id (from list_threads)
        current_messages: Optional JSON array of the live session's messages
    """
    err = _check_data_exists()
    if err:
        return err

    try:
        current, stored = _load_inputs(current_messages)
    except _InputError as exc:
        return str(exc)

    thread = next(
        (t for t in build_threads(current, stored, config.GAP_THRESHOLD_MS) if t.id == thread_id),
        None,
    )
    if thread is None:
        return f"Thread not found: {thread_id}"

    lines = [
        f"# Thread {thread.id}",
        f"Conversations: {thread.conversation_count}",
        f"Last activity: {_format_ts(thread_timestamp(thread))}",
        "",
        "---",
        "",
    ]

    char_count = 0
    for card in thread.thread_messages:
        lines.append(f"_{_format_ts(card_timestamp(card))}_")
        for label, content in (("**User**", card.user_content), ("**Assistant**", card.ai_content)):
            if not content:
                continue
            remaining = config.MAX_TRANSCRIPT_CHARS - char_count
            if remaining <= 0 or len(content) > remaining:
                lines.append(f"{label}:")
                lines.append(content[: max(0, remaining)])
                lines.append(
                    f"\n... [Truncated — thread exceeds {config.MAX_TRANSCRIPT_CHARS:,} chars]"
                )
                return "\n".join(lines)
            char_count += len(content)
            lines.append(f"{label}:")
            lines.append(content)
            lines.append("")

    if thread.resources:
        lines.append("## Resources")
        for resource in thread.resources:
            lines.append(f"- {resource.title or resource.url or resource.id}")

    return "\n".join(lines)


@mcp.tool()
def get_chat_history(thread_id: str | None = None, current_messages: str = "") -> str:
    """Role/content transcript as a JSON array, ready for a completion request.

    Args:
        thread_id: Optional thread id to restrict the transcript to
        current_messages: Optional JSON array of the live session's messages
    """
    err = _check_data_exists()
    if err:
        return err

    try:
        current, stored = _load_inputs(current_messages)
    except _InputError as exc:
        return str(exc)

    merged = merge_messages(current, stored, config.GAP_THRESHOLD_MS)
    if thread_id:
        merged = [m for m in merged if m.thread_id == thread_id]

    return json.dumps(
        [turn.model_dump() for turn in build_chat_history(merged)],
        ensure_ascii=False,
    )


@mcp.tool()
def get_stats(current_messages: str = "") -> str:
    """Get statistics about the stored and current messages."""
    err = _check_data_exists()
    if err:
        return err

    try:
        current, stored = _load_inputs(current_messages)
    except _InputError as exc:
        return str(exc)

    stats = message_stats(
        merge_messages(current, stored, config.GAP_THRESHOLD_MS), config.GAP_THRESHOLD_MS
    )

    lines = [
        "# Chat History Statistics",
        "",
        f"- **Messages**: {stats['total_messages']:,}",
        f"- **User / assistant**: {stats['user_messages']:,} / {stats['assistant_messages']:,}",
        f"- **Conversations**: {stats['conversations']:,}",
        f"- **Threads**: {stats['threads']:,}",
        f"- **Current / stored**: {stats['current_session']:,} / {stats['stored']:,}",
        f"- **Avg content length**: {stats['average_content_length']}",
    ]
    if stats["oldest_message"]:
        lines.append(f"- **Date range**: {stats['oldest_message']} → {stats['newest_message']}")

    lines.append(f"\n*Data read from: {config.STORE_PATH}*")
    return "\n".join(lines)
