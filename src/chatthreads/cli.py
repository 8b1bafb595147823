"""CLI interface for chatthreads."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import click

from . import __version__
from .config import GAP_THRESHOLD_MINUTES, MAX_DISPLAYED_THREADS


def _read_json(path: str | None):
    if path is None:
        return []
    try:
        with Path(path).open(encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc.msg} (line {exc.lineno})")
    except OSError as exc:
        raise click.ClickException(f"Could not read {path}: {exc.strerror}")


def _load(stored_path: str, current_path: str | None):
    from .loader import load_current_payload, load_stored_payload

    stored = load_stored_payload(_read_json(stored_path))
    current = load_current_payload(_read_json(current_path))
    return current, stored


def _dump(records) -> str:
    return json.dumps(
        [r.model_dump(mode="json", by_alias=True) for r in records],
        indent=2,
        ensure_ascii=False,
    )


def _format_ts(ts: float | None) -> str:
    if ts is None:
        return "Unknown date"
    try:
        return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return "Unknown date"


def _preview(text: str | None, width: int = 80) -> str:
    if not text:
        return "-"
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 3] + "..."


stored_argument = click.argument("stored_path", type=click.Path(exists=True, dir_okay=False))
current_option = click.option(
    "--current",
    "current_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the live session's messages",
)
gap_option = click.option(
    "--gap-minutes",
    type=click.FloatRange(min=0),
    default=GAP_THRESHOLD_MINUTES,
    show_default=True,
    help="Idle time after which a new thread starts",
)


@click.group()
@click.version_option(version=__version__, prog_name="chatthreads")
def cli():
    """chatthreads — Rebuild conversation threads from chat message dumps.

    Point it at a stored-messages JSON file (and optionally the current
    session's messages) to merge, pair and group them into threads.
    """
    pass


@cli.command()
@stored_argument
@current_option
@gap_option
@click.option("--limit", type=click.IntRange(min=1), default=MAX_DISPLAYED_THREADS, show_default=True)
@click.option("--keyword", help="Only include threads with a question or answer containing this text")
@click.option("--json", "as_json", is_flag=True, help="Print threads as JSON")
def threads(stored_path, current_path, gap_minutes, limit, keyword, as_json):
    """List the most recent conversation threads."""
    from .aggregate import thread_timestamp
    from .pipeline import build_threads, filter_threads

    current, stored = _load(stored_path, current_path)
    result = filter_threads(build_threads(current, stored, gap_minutes * 60 * 1000), keyword)
    result = result[:limit]

    if as_json:
        click.echo(_dump(result))
        return

    if not result:
        click.echo("No threads found.")
        return

    click.echo()
    for i, thread in enumerate(result, 1):
        flags = []
        if thread.is_current:
            flags.append("current")
        if thread.is_stored:
            flags.append("stored")
        click.echo(click.style(f"{i}. {thread.id}", bold=True))
        click.echo(
            f"   {_format_ts(thread_timestamp(thread))} | "
            f"{thread.conversation_count} conversations | {', '.join(flags) or 'unsynced'}"
        )
        click.echo(f"   Q: {_preview(thread.user_content)}")
        click.echo(f"   A: {_preview(thread.ai_content)}")
        if thread.resources:
            click.echo(f"   Resources: {len(thread.resources)}")
    click.echo()


@cli.command()
@stored_argument
@current_option
@gap_option
@click.option("--out", type=click.Path(dir_okay=False, writable=True), help="Write to a file instead of stdout")
def merge(stored_path, current_path, gap_minutes, out):
    """Print the merged, thread-stamped message list."""
    from .merge import merge_messages

    current, stored = _load(stored_path, current_path)
    merged = merge_messages(current, stored, gap_minutes * 60 * 1000)
    payload = _dump(merged)

    if out:
        Path(out).write_text(payload + "\n", encoding="utf-8")
        click.echo(f"Wrote {len(merged)} messages to {out}")
    else:
        click.echo(payload)


@cli.command()
@stored_argument
@current_option
@gap_option
def snapshot(stored_path, current_path, gap_minutes):
    """Print thread snapshots for the merged messages."""
    from .merge import merge_messages
    from .pipeline import snapshot_threads

    current, stored = _load(stored_path, current_path)
    merged = merge_messages(current, stored, gap_minutes * 60 * 1000)
    click.echo(_dump(snapshot_threads(merged, gap_minutes * 60 * 1000)))


@cli.command()
@stored_argument
@current_option
@gap_option
@click.option("--thread", "thread_id", help="Only include messages from this thread")
def history(stored_path, current_path, gap_minutes, thread_id):
    """Print a role/content transcript ready for a completion request."""
    from .history import build_chat_history
    from .merge import merge_messages

    current, stored = _load(stored_path, current_path)
    merged = merge_messages(current, stored, gap_minutes * 60 * 1000)
    if thread_id:
        merged = [m for m in merged if m.thread_id == thread_id]
        if not merged:
            raise click.ClickException(f"Thread not found: {thread_id}")

    click.echo(_dump(build_chat_history(merged)))


@cli.command()
@stored_argument
@current_option
@gap_option
def stats(stored_path, current_path, gap_minutes):
    """Show statistics about a message dump."""
    from .history import message_stats
    from .merge import merge_messages

    gap_threshold = gap_minutes * 60 * 1000
    current, stored = _load(stored_path, current_path)
    s = message_stats(merge_messages(current, stored, gap_threshold), gap_threshold)

    click.echo()
    click.echo(click.style("Message Statistics", bold=True))
    click.echo(f"  Messages:       {s['total_messages']:,}")
    click.echo(f"  User/assistant: {s['user_messages']:,} / {s['assistant_messages']:,}")
    click.echo(f"  Conversations:  {s['conversations']:,}")
    click.echo(f"  Threads:        {s['threads']:,}")
    click.echo(f"  Current/stored: {s['current_session']:,} / {s['stored']:,}")
    click.echo(f"  Avg length:     {s['average_content_length']}")
    if s["oldest_message"]:
        click.echo(f"  Date range:     {s['oldest_message']} → {s['newest_message']}")
    click.echo()


@cli.command()
def serve():
    """Start the MCP server (stdio transport)."""
    from .config import STORE_PATH

    if not STORE_PATH.exists():
        click.echo(f"Warning: no stored messages at {STORE_PATH}", err=True)

    from .server import mcp

    mcp.run(transport="stdio")
