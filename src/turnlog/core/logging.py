"""Leveled diagnostics for turnlog hooks and watchers.

Every event goes to three channels:

- the stdlib ``logging`` logger ``turnlog.<source>``
- a JSONL run log under ``<state_dir>/logs/<run_id>.jsonl``
- an optional :class:`DiagnosticsWriter` (the SQL sink's diagnostics table)

All channels are best-effort. A failing channel falls back to stderr and
never raises into the ingestion pipeline.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any, Protocol

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class LogLevel(IntEnum):
    """Severity of a diagnostic event, matching the stored level column."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARNING = 3
    ERROR = 4
    CRITICAL = 5

    @property
    def stdlib_level(self) -> int:
        return _STDLIB_LEVELS[self]


_STDLIB_LEVELS = {
    LogLevel.TRACE: TRACE,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


@dataclass
class DiagnosticEvent:
    """One reported event."""

    source: str
    message: str
    level: LogLevel
    detail: str | None = None
    path: str | None = None
    session_id: str | None = None
    entry_id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.created_at.isoformat(),
            "source": self.source,
            "level": self.level.name,
            "message": self.message,
            "detail": self.detail,
            "path": self.path,
            "session_id": self.session_id,
            "entry_id": self.entry_id,
        }


class DiagnosticsWriter(Protocol):
    """Anything that can persist a diagnostic event."""

    def write_diagnostic(self, event: DiagnosticEvent) -> None: ...


def setup_logging(verbose: bool) -> None:
    """Configure console logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


class Diagnostics:
    """Best-effort leveled event reporter for one source (e.g. ``hook.codex``).

    TRACE and DEBUG events always reach the stdlib logger but are only
    persisted (JSONL file and writer) when ``debug_enabled`` is set.
    """

    def __init__(
        self,
        source: str,
        log_dir: Path | None = None,
        writer: DiagnosticsWriter | None = None,
        debug_enabled: bool = False,
    ):
        self.source = source
        self.writer = writer
        self.debug_enabled = debug_enabled
        self.run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self.logger = logging.getLogger(f"turnlog.{source}")
        self._log_file = None
        self._log_path: Path | None = None

        if log_dir is not None:
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
                self._log_path = log_dir / f"{self.run_id}.jsonl"
                self._log_file = open(self._log_path, "a", encoding="utf-8")
            except OSError as e:
                _stderr(f"[turnlog.{source}] cannot open run log in {log_dir}: {e}")

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        detail: str | None = None,
        path: str | None = None,
        session_id: str | None = None,
        entry_id: int | None = None,
    ) -> DiagnosticEvent:
        """Report one event on every channel. Never raises."""
        event = DiagnosticEvent(
            source=self.source,
            message=message,
            level=level,
            detail=detail,
            path=path,
            session_id=session_id,
            entry_id=entry_id,
        )

        try:
            if detail and level >= LogLevel.WARNING:
                self.logger.log(level.stdlib_level, "%s\n%s", message, detail)
            else:
                self.logger.log(level.stdlib_level, "%s", message)
        except Exception as e:  # noqa: BLE001
            _stderr(f"[turnlog.{self.source}] logging failed: {e}")

        if level <= LogLevel.DEBUG and not self.debug_enabled:
            return event

        self._write_event(event)

        if self.writer is not None:
            try:
                self.writer.write_diagnostic(event)
            except Exception as e:  # noqa: BLE001
                _stderr(f"[turnlog.{self.source}] diagnostics writer failed: {e} ({message})")

        return event

    def trace(self, message: str, **kwargs: Any) -> DiagnosticEvent:
        return self.log(LogLevel.TRACE, message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> DiagnosticEvent:
        return self.log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> DiagnosticEvent:
        return self.log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> DiagnosticEvent:
        return self.log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> DiagnosticEvent:
        return self.log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> DiagnosticEvent:
        return self.log(LogLevel.CRITICAL, message, **kwargs)

    def _write_event(self, event: DiagnosticEvent) -> None:
        """Append the event to the JSONL run log."""
        if self._log_file is None:
            return
        try:
            self._log_file.write(json.dumps(event.to_dict()) + "\n")
            self._log_file.flush()
        except (OSError, ValueError) as e:
            _stderr(f"[turnlog.{self.source}] run log write failed: {e}")

    def close(self) -> None:
        """Close the log file if open."""
        if self._log_file is not None:
            try:
                self._log_file.close()
            except OSError:
                pass
            self._log_file = None


def _stderr(message: str) -> None:
    try:
        print(message, file=sys.stderr)
    except Exception:  # noqa: BLE001
        pass
