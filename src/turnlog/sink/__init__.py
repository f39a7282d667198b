"""Persistence sinks for completed conversation pairs."""

from turnlog.sink.base import PersistenceSink
from turnlog.sink.sql import SqlSink

__all__ = [
    "PersistenceSink",
    "SqlSink",
]
