"""Service layer for turnlog storage.

- conversations: sessions and question/response entries
- diagnostics: persisted diagnostic events
"""

from turnlog.services import conversations, diagnostics

__all__ = [
    "conversations",
    "diagnostics",
]
