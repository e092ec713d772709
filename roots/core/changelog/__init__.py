"""
Append-only change log implementations.

Available backends:
- InMemoryChangeLog: Process-local
- SQLiteChangeLog: Durable via aiosqlite
"""

from roots.core.changelog.base import ChangeLog, ChangeLogView
from roots.core.changelog.memory_log import InMemoryChangeLog
from roots.core.changelog.sqlite_log import SQLiteChangeLog

__all__ = [
    "ChangeLog",
    "ChangeLogView",
    "InMemoryChangeLog",
    "SQLiteChangeLog",
]
