"""turnlog CLI — main entry point and shared utilities."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import click
from rich.console import Console

from turnlog.config import Settings, get_settings
from turnlog.core.logging import Diagnostics, setup_logging
from turnlog.core.models import Tool
from turnlog.ingest.pipeline import IngestionPipeline
from turnlog.sink.sql import SqlSink

console = Console()
err_console = Console(stderr=True)

TOOL_CHOICES = [tool.value for tool in Tool]


def load_settings(**overrides: object) -> Settings:
    """Settings from env/.env, with non-None CLI values taking precedence."""
    explicit = {key: value for key, value in overrides.items() if value is not None}
    if not explicit:
        return get_settings()
    return Settings(**explicit)


def build_pipeline(
    settings: Settings,
    tool: Tool,
    sink: SqlSink,
    diagnostics: Diagnostics,
    *,
    autosave: bool = False,
) -> IngestionPipeline:
    """Pipeline for one tool with its snapshot files under the state dir."""
    return IngestionPipeline(
        sink,
        tool,
        diagnostics,
        checkpoint_path=settings.checkpoint_path(tool.value),
        stream_state_path=settings.stream_state_path(tool.value),
        stream_state_ttl=timedelta(hours=settings.stream_state_ttl_hours),
        autosave=autosave,
    )


def state_dir_option(fn):
    """Shared ``--state-dir`` option."""
    return click.option(
        "--state-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Override state directory (TURNLOG_STATE_DIR)",
    )(fn)


def database_url_option(fn):
    """Shared ``--database-url`` option."""
    return click.option(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (TURNLOG_DATABASE_URL)",
    )(fn)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging on stderr")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """turnlog — log question/answer turns from CLI assistant transcripts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    try:
        verbose = verbose or get_settings().verbose
    except ValueError:
        # Invalid settings are reported by the subcommand that loads them.
        pass
    setup_logging(verbose)


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from turnlog.cli.hook_commands import hook  # noqa: E402
from turnlog.cli.info_commands import entries, state  # noqa: E402
from turnlog.cli.watch_commands import watch  # noqa: E402

# Register commands
main.add_command(hook)
main.add_command(watch)
main.add_command(entries)
main.add_command(state)
