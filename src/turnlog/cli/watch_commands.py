"""Watch command: follow a transcript directory and ingest as files settle."""

from __future__ import annotations

import signal
import threading
from pathlib import Path

import click
from rich.markup import escape

from turnlog.cli.main import (
    TOOL_CHOICES,
    build_pipeline,
    console,
    database_url_option,
    err_console,
    load_settings,
    state_dir_option,
)
from turnlog.core.errors import SinkUnavailableError
from turnlog.core.logging import Diagnostics
from turnlog.core.models import Tool
from turnlog.ingest.watcher import TranscriptWatcher, default_watch_root
from turnlog.sink.sql import SqlSink

ACK = "{}"


@click.command()
@click.argument("root", required=False, type=click.Path(path_type=Path))
@click.option("--tool", type=click.Choice(TOOL_CHOICES), default=Tool.CODEX.value, help="Tool whose transcripts are watched")
@state_dir_option
@database_url_option
@click.option("--debug/--no-debug", default=None, help="Persist TRACE/DEBUG diagnostics")
@click.option("--debounce", type=float, default=None, help="Seconds a file must stay quiet before ingestion")
@click.option("--tick", type=float, default=None, help="Seconds between change scans")
def watch(
    root: Path | None,
    tool: str,
    state_dir: Path | None,
    database_url: str | None,
    debug: bool | None,
    debounce: float | None,
    tick: float | None,
):
    """Watch ROOT for transcript changes and log each new exchange.

    ROOT defaults to TURNLOG_WATCH_ROOT, then the first existing Codex
    sessions directory. Stops cleanly on Ctrl+C or SIGTERM.
    """
    settings = load_settings(
        state_dir=state_dir,
        database_url=database_url,
        debug=debug,
        debounce_seconds=debounce,
        tick_seconds=tick,
    )
    tool_enum = Tool(tool)
    source = f"watch.{tool_enum.value}"
    tag = escape(f"[{source}]")

    try:
        settings.ensure_state_dir()
        sink = SqlSink.connect(settings.resolved_database_url)
    except (SinkUnavailableError, OSError) as e:
        err_console.print(f"[red]{tag} CRITICAL:[/red] Failed to initialize database services: {escape(str(e))}")
        click.echo(ACK)
        raise SystemExit(1) from e

    diagnostics = Diagnostics(source, log_dir=settings.log_dir, writer=sink, debug_enabled=settings.debug)
    watch_root = root or settings.watch_root or default_watch_root()
    if watch_root is None or not Path(watch_root).expanduser().is_dir():
        diagnostics.error(f"Transcript directory not found: {watch_root or '(none)'}")
        err_console.print(f"[red]{tag}[/red] No transcript directory to watch.")
        diagnostics.close()
        sink.close()
        click.echo(ACK)
        return
    watch_root = Path(watch_root).expanduser()

    pipeline = build_pipeline(settings, tool_enum, sink, diagnostics, autosave=True)
    pipeline.load_state()

    stop = threading.Event()

    def _request_stop(signum, frame):
        stop.set()

    previous_handlers = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous_handlers[signum] = signal.signal(signum, _request_stop)
        except ValueError:
            # Not the main thread
            pass

    watcher = TranscriptWatcher(
        watch_root,
        pipeline.ingest_watched,
        debounce=settings.debounce_seconds,
        tick=settings.tick_seconds,
        suffix=settings.watch_suffix,
        diagnostics=diagnostics,
    )

    console.print(f"Watching [bold]{escape(str(watch_root))}[/bold] for transcripts...")
    console.print("Press Ctrl+C to stop.")
    diagnostics.info(f"Watcher started on {watch_root}", path=str(watch_root))
    try:
        watcher.run(stop)
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)
        pipeline.save_state()
        diagnostics.info("Watcher stopped")
        diagnostics.close()
        sink.close()
        console.print("Watcher stopped.")
