"""Info commands: turnlog entries, turnlog state."""

from __future__ import annotations

from pathlib import Path

import click
from rich import box
from rich.markup import escape
from rich.table import Table

from turnlog.cli.main import TOOL_CHOICES, console, database_url_option, err_console, load_settings, state_dir_option
from turnlog.config import Settings
from turnlog.core.errors import SinkUnavailableError
from turnlog.core.models import Tool
from turnlog.ingest.checkpoint import CheckpointStore
from turnlog.ingest.streaming import StreamAccumulator
from turnlog.sink.sql import SqlSink


@click.command()
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Maximum entries to show")
@click.option("--session", "session_id", default=None, help="Only entries of this session id")
@state_dir_option
@database_url_option
def entries(limit: int, session_id: str | None, state_dir: Path | None, database_url: str | None):
    """List the most recently logged entries."""
    settings = load_settings(state_dir=state_dir, database_url=database_url)
    try:
        sink = SqlSink.connect(settings.resolved_database_url)
    except SinkUnavailableError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1) from e

    try:
        rows = sink.list_entries(limit=limit, session_id=session_id)
        total = sink.count_entries(session_id=session_id)
    finally:
        sink.close()

    if not rows:
        console.print("[dim]No entries logged yet.[/dim]")
        return

    table = Table(title=f"Entries ({len(rows)} of {total})", box=box.ROUNDED)
    table.add_column("ID", style="bold", justify="right")
    table.add_column("Created")
    table.add_column("Tool", style="cyan")
    table.add_column("Title")
    for row in rows:
        table.add_row(
            str(row.id),
            row.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            escape(row.tool),
            escape(row.title),
        )
    console.print(table)


@click.command()
@click.option("--tool", type=click.Choice(TOOL_CHOICES), default=None, help="Only this tool (default: all)")
@state_dir_option
def state(tool: str | None, state_dir: Path | None):
    """Show the checkpoint and pending stream snapshots."""
    settings = load_settings(state_dir=state_dir)
    tools = [Tool(tool)] if tool else list(Tool)
    for tool_enum in tools:
        _show_tool_state(settings, tool_enum)


def _show_tool_state(settings: Settings, tool_enum: Tool) -> None:
    """Print one tool's checkpoint table and pending stream buffers."""
    checkpoints = CheckpointStore()
    checkpoint_path = settings.checkpoint_path(tool_enum.value)
    result = checkpoints.load(checkpoint_path)
    if not result.ok:
        err_console.print(f"[yellow]Could not read {escape(str(checkpoint_path))}:[/yellow] {escape(result.error or '')}")

    streams = StreamAccumulator()
    stream_path = settings.stream_state_path(tool_enum.value)
    result = streams.load(stream_path)
    if not result.ok:
        err_console.print(f"[yellow]Could not read {escape(str(stream_path))}:[/yellow] {escape(result.error or '')}")

    table = Table(title=f"Checkpoints ({tool_enum.display_name})", box=box.ROUNDED)
    table.add_column("Key")
    table.add_column("Hash", style="dim")
    table.add_column("Last entry")
    table.add_column("Size", justify="right")
    for key, record in sorted(checkpoints.snapshot().items()):
        table.add_row(
            escape(key),
            record.last_hash[:12],
            record.last_entry_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(record.last_size),
        )
    console.print(table)

    pending = streams.snapshot()
    if not pending:
        console.print("[dim]No pending streamed responses.[/dim]")
        return

    table = Table(title="Pending streams", box=box.ROUNDED)
    table.add_column("Session")
    table.add_column("Question")
    table.add_column("Buffered", justify="right")
    table.add_column("Updated")
    for session_id, stream in sorted(pending.items()):
        table.add_row(
            escape(session_id),
            escape(stream.question[:60]),
            f"{len(stream.response)} chars",
            stream.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)
