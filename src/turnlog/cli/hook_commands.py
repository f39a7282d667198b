"""Hook command — one-shot ingestion of a tool's hook payload from stdin."""

from __future__ import annotations

import traceback
from pathlib import Path

import click
from rich.markup import escape

from turnlog.cli.main import (
    TOOL_CHOICES,
    build_pipeline,
    database_url_option,
    err_console,
    load_settings,
    state_dir_option,
)
from turnlog.core.errors import PayloadError, SinkUnavailableError
from turnlog.core.logging import Diagnostics
from turnlog.core.models import Tool
from turnlog.ingest.payload import decode_hook_payload
from turnlog.sink.sql import SqlSink

# Printed on stdout in every case so the calling CLI's turn loop continues.
ACK = "{}"


def read_payload() -> str:
    """All of stdin as text. Undecodable bytes become U+FFFD."""
    try:
        data = click.get_binary_stream("stdin").read()
    except OSError:
        return ""
    return data.decode("utf-8", errors="replace")


@click.command()
@click.option("--tool", type=click.Choice(TOOL_CHOICES), required=True, help="Tool that invoked the hook")
@state_dir_option
@database_url_option
@click.option("--debug/--no-debug", default=None, help="Persist TRACE/DEBUG diagnostics")
def hook(tool: str, state_dir: Path | None, database_url: str | None, debug: bool | None):
    """Ingest one hook payload read from stdin.

    Accepts a transcript pointer (session_id, transcript_path,
    hook_event_name), a streamed chunk (session_id, question, chunk_text,
    is_final, or Gemini's AfterModel payload) or an inline question/response.

    Always prints {} on stdout. Exits 1 only if the settings or the database
    cannot be loaded.
    """
    tool_enum = Tool(tool)
    source = f"hook.{tool_enum.value}"
    tag = escape(f"[{source}]")
    raw = read_payload()

    try:
        settings = load_settings(state_dir=state_dir, database_url=database_url, debug=debug)
        settings.ensure_state_dir()
        sink = SqlSink.connect(settings.resolved_database_url)
    except (SinkUnavailableError, ValueError, OSError) as e:
        err_console.print(f"[red]{tag} CRITICAL:[/red] Failed to initialize database services: {escape(str(e))}")
        click.echo(ACK)
        raise SystemExit(1) from e

    diagnostics = Diagnostics(source, log_dir=settings.log_dir, writer=sink, debug_enabled=settings.debug)
    pipeline = build_pipeline(settings, tool_enum, sink, diagnostics)

    try:
        pipeline.load_state()
        diagnostics.debug("Hook started")
        if not raw.strip():
            diagnostics.warning("Received empty payload from stdin.")
        else:
            diagnostics.trace("Received hook input", detail=raw)
            try:
                hook_input = decode_hook_payload(raw)
            except PayloadError as e:
                diagnostics.warning(str(e), detail=raw)
            else:
                result = pipeline.handle_hook(hook_input, raw)
                diagnostics.debug(f"Hook completed: {result.outcome.value}")
    except Exception as e:  # noqa: BLE001
        diagnostics.critical(f"Unhandled exception in hook: {e}", detail=traceback.format_exc())
        err_console.print(f"[red]{tag} CRITICAL:[/red] {escape(str(e))}")
    finally:
        pipeline.save_state()
        diagnostics.close()
        sink.close()

    click.echo(ACK)
