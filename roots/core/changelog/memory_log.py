"""In-process change log."""

from roots.core.changelog.base import ChangeLog
from roots.models.archive import ChangeLogEntry


class InMemoryChangeLog(ChangeLog):
    """List-backed change log; sequence n lives at index n - 1."""

    def __init__(self):
        super().__init__()
        self._entries: list[ChangeLogEntry] = []
        self._heads: dict[str, ChangeLogEntry] = {}

    async def head(self, entity_id: str) -> ChangeLogEntry | None:
        return self._heads.get(entity_id)

    async def last_sequence(self) -> int:
        return len(self._entries)

    async def fetch_page(
        self, entity_id: str | None, after: int, until: int, limit: int
    ) -> list[ChangeLogEntry]:
        page = []
        for entry in self._entries[after:until]:
            if entity_id is None or entry.entity_id == entity_id:
                page.append(entry)
                if len(page) == limit:
                    break
        return page

    async def _insert(self, entry: ChangeLogEntry) -> None:
        self._entries.append(entry)
        self._heads[entry.entity_id] = entry

    async def close(self) -> None:
        pass
