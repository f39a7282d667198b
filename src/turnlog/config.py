"""Configuration settings for turnlog.

Resolution order: CLI flags > ``TURNLOG_*`` environment / ``.env`` > defaults.

State layout under ``state_dir``:
- turnlog.db: sessions, entries, diagnostics (default SQLite sink)
- <tool>_state.json: checkpoint snapshot
- <tool>_stream_state.json: in-flight streamed responses
- logs/: JSONL run logs
"""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_state_dir() -> Path:
    xdg = os.environ.get("XDG_STATE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "state"
    return base / "turnlog"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TURNLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    state_dir: Path = Field(default_factory=_default_state_dir)

    # Any SQLAlchemy URL; empty means SQLite under state_dir
    database_url: str = ""

    # Watch mode
    watch_root: Path | None = None
    watch_suffix: str = ".jsonl"
    debounce_seconds: float = 0.25
    tick_seconds: float = 0.3

    # Unfinished streamed turns older than this are dropped on save
    stream_state_ttl_hours: float = 24.0

    # Persist TRACE/DEBUG diagnostics
    debug: bool = False
    # Console DEBUG logging
    verbose: bool = False

    @property
    def resolved_database_url(self) -> str:
        """SQLAlchemy URL for the sink database."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.state_dir / 'turnlog.db'}"

    @property
    def log_dir(self) -> Path:
        return self.state_dir / "logs"

    def checkpoint_path(self, tool: str) -> Path:
        """Checkpoint snapshot for one tool's hook."""
        return self.state_dir / f"{tool}_state.json"

    def stream_state_path(self, tool: str) -> Path:
        """Stream-state snapshot for one tool's hook."""
        return self.state_dir / f"{tool}_stream_state.json"

    def ensure_state_dir(self) -> None:
        """Create state directory if it doesn't exist."""
        self.state_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (useful for testing)."""
    global _settings
    _settings = None
