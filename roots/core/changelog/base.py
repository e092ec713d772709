"""
Base interface for the append-only change log.

The log is the authoritative local record of anchored snapshots: the
archive's receipt and content indexes are caches rebuilt from it.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from roots.models.archive import ChangeLogEntry
from roots.utils.exceptions import ChangeLogError


class ChangeLogView:
    """
    Lazy, finite, restartable sequence of log entries, oldest first.

    Each ``async for`` starts a fresh read. A read covers entries that
    existed when it started; later appends show up on the next iteration.
    """

    def __init__(self, log: "ChangeLog", entity_id: str | None = None, page_size: int = 100):
        self._log = log
        self._entity_id = entity_id
        self._page_size = page_size

    async def __aiter__(self) -> AsyncIterator[ChangeLogEntry]:
        until = await self._log.last_sequence()
        after = 0
        while after < until:
            page = await self._log.fetch_page(self._entity_id, after, until, self._page_size)
            for entry in page:
                yield entry
            if len(page) < self._page_size:
                return
            after = page[-1].sequence

    async def to_list(self) -> list[ChangeLogEntry]:
        return [entry async for entry in self]


class ChangeLog(ABC):
    """
    Abstract base class for change log storage.

    Subclasses provide raw storage; chaining rules and sequencing live
    here. Entries are never updated or deleted.
    """

    def __init__(self):
        self._append_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Prepare storage."""
        pass

    async def append(self, entry: ChangeLogEntry) -> ChangeLogEntry:
        """
        Append an entry, assigning its sequence number.

        Args:
            entry: Entry whose previous_content_id must match the entity's head

        Returns:
            The stored entry

        Raises:
            ChangeLogError: If the entry does not extend the entity's history
        """
        async with self._append_lock:
            head = await self.head(entry.entity_id)
            expected = head.content_id if head else None
            if entry.previous_content_id != expected:
                raise ChangeLogError(
                    f"Entry for {entry.entity_id} does not extend its history",
                    context={
                        "entity_id": entry.entity_id,
                        "content_id": entry.content_id,
                        "expected_previous": expected,
                        "given_previous": entry.previous_content_id,
                    },
                )

            stored = entry.model_copy(update={"sequence": await self.last_sequence() + 1})
            await self._insert(stored)
            return stored

    def history_of(self, entity_id: str) -> ChangeLogView:
        """History of one entity, oldest to newest."""
        return ChangeLogView(self, entity_id)

    def entries(self) -> ChangeLogView:
        """Every entry in the log, in append order."""
        return ChangeLogView(self)

    @abstractmethod
    async def head(self, entity_id: str) -> ChangeLogEntry | None:
        """Newest entry for an entity."""
        pass

    @abstractmethod
    async def last_sequence(self) -> int:
        """Sequence number of the newest entry (0 when empty)."""
        pass

    @abstractmethod
    async def fetch_page(
        self, entity_id: str | None, after: int, until: int, limit: int
    ) -> list[ChangeLogEntry]:
        """
        Entries with ``after < sequence <= until``, ascending.

        Args:
            entity_id: Restrict to one entity, or None for all
            after: Exclusive lower sequence bound
            until: Inclusive upper sequence bound
            limit: Page size
        """
        pass

    @abstractmethod
    async def _insert(self, entry: ChangeLogEntry) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
