"""
SQLite change log using aiosqlite.
"""

from datetime import datetime
from pathlib import Path

import aiosqlite

from roots.core.changelog.base import ChangeLog
from roots.models.archive import ChangeLogEntry, EntityKind
from roots.utils.exceptions import ChangeLogError
from roots.utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "sequence, entity_id, entity_kind, content_id, timestamp, actor_id, "
    "previous_content_id, tx_ref, location, size, media_type"
)


class SQLiteChangeLog(ChangeLog):
    """
    SQLite-backed append-only change log.

    Features:
    - Durable provenance history
    - Indexed per-entity history reads
    - Insert-only access path
    """

    def __init__(self, db_path: str = "data/roots_changelog.db"):
        """
        Initialize SQLite change log.

        Args:
            db_path: Path to SQLite database file
        """
        super().__init__()
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS changelog (
                sequence INTEGER PRIMARY KEY,
                entity_id TEXT NOT NULL,
                entity_kind TEXT NOT NULL,
                content_id TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                actor_id TEXT NOT NULL,
                previous_content_id TEXT,
                tx_ref TEXT NOT NULL,
                location TEXT NOT NULL,
                size INTEGER NOT NULL,
                media_type TEXT NOT NULL
            )
        """
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_changelog_entity ON changelog(entity_id, sequence)"
        )
        await self.connection.commit()

    async def head(self, entity_id: str) -> ChangeLogEntry | None:
        rows = await self._query(
            f"SELECT {_COLUMNS} FROM changelog WHERE entity_id = ? ORDER BY sequence DESC LIMIT 1",
            (entity_id,),
        )
        return self._row_to_entry(rows[0]) if rows else None

    async def last_sequence(self) -> int:
        rows = await self._query("SELECT COALESCE(MAX(sequence), 0) FROM changelog", ())
        return rows[0][0]

    async def fetch_page(
        self, entity_id: str | None, after: int, until: int, limit: int
    ) -> list[ChangeLogEntry]:
        query = f"SELECT {_COLUMNS} FROM changelog WHERE sequence > ? AND sequence <= ?"
        params: list = [after, until]

        if entity_id is not None:
            query += " AND entity_id = ?"
            params.append(entity_id)

        query += " ORDER BY sequence LIMIT ?"
        params.append(limit)

        rows = await self._query(query, tuple(params))
        return [self._row_to_entry(row) for row in rows]

    async def _insert(self, entry: ChangeLogEntry) -> None:
        await self.connect()
        try:
            await self.connection.execute(
                f"INSERT INTO changelog ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.sequence,
                    entry.entity_id,
                    entry.entity_kind.value,
                    entry.content_id,
                    entry.timestamp.isoformat(),
                    entry.actor_id,
                    entry.previous_content_id,
                    entry.tx_ref,
                    entry.location,
                    entry.size,
                    entry.media_type,
                ),
            )
            await self.connection.commit()
        except Exception as e:
            await self.connection.rollback()
            logger.bind(entity_id=entry.entity_id, content_id=entry.content_id).error(
                f"Change log append failed: {e}"
            )
            raise ChangeLogError(
                f"Failed to append change log entry: {e}",
                context={"entity_id": entry.entity_id, "content_id": entry.content_id},
            ) from e

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    async def _query(self, query: str, params: tuple) -> list[tuple]:
        await self.connect()
        try:
            cursor = await self.connection.execute(query, params)
            return await cursor.fetchall()
        except Exception as e:
            raise ChangeLogError(f"Change log query failed: {e}") from e

    @staticmethod
    def _row_to_entry(row: tuple) -> ChangeLogEntry:
        return ChangeLogEntry(
            sequence=row[0],
            entity_id=row[1],
            entity_kind=EntityKind(row[2]),
            content_id=row[3],
            timestamp=datetime.fromisoformat(row[4]),
            actor_id=row[5],
            previous_content_id=row[6],
            tx_ref=row[7],
            location=row[8],
            size=row[9],
            media_type=row[10],
        )
