"""turnlog error types and utilities."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path


def atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using temp file + rename.

    Writes to a temporary file in the same directory, fsyncs it,
    then atomically replaces the target path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        os.write(fd, content.encode())
        os.fsync(fd)
        os.close(fd)
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.close(fd)
        except OSError:
            pass
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a best-effort snapshot load or save.

    ``ok`` is False when the operation failed; ``error`` carries the reason
    so the caller can report it. A failed operation never raises.
    """

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> StoreResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, exc: BaseException) -> StoreResult:
        return cls(ok=False, error=f"{type(exc).__name__}: {exc}")


class TurnlogError(Exception):
    """Base exception for turnlog."""

    pass


class SinkError(TurnlogError):
    """Error writing to the persistence sink."""

    pass


class SinkUnavailableError(SinkError):
    """The persistence sink could not be initialized. Fatal for the process."""

    pass


class PayloadError(TurnlogError):
    """Hook payload on stdin could not be decoded."""

    pass
