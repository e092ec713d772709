"""
SQLite graph backend using aiosqlite.

Each entity row holds the entity's canonical snapshot, so the bytes on
disk are exactly what gets hashed and anchored. A side table indexes
memory-to-person associations for ``list_memories(person_id=...)``.
"""

import asyncio
from pathlib import Path

import aiosqlite

from roots.core.codec import canonicalize, parse
from roots.core.graph_store.base import GraphBackend
from roots.models.memory import Memory
from roots.models.person import Person
from roots.utils.exceptions import GraphStoreError, MalformedError
from roots.utils.logger import get_logger

logger = get_logger(__name__)


class SQLiteGraphBackend(GraphBackend):
    """
    SQLite-based graph backend for persons and memories.

    Features:
    - Local durable storage
    - Canonical snapshot documents per entity
    - Atomic batch writes (single transaction per command)

    Commands share one connection, so a lock keeps each batch alone in its
    transaction and keeps reads from seeing another batch before it commits.
    """

    def __init__(self, db_path: str = "data/roots_graph.db"):
        """
        Initialize SQLite graph backend.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

        # Ensure directory exists
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA foreign_keys = ON")
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS persons (
                id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                tombstoned INTEGER NOT NULL DEFAULT 0,
                document BLOB NOT NULL
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                tombstoned INTEGER NOT NULL DEFAULT 0,
                document BLOB NOT NULL
            )
        """
        )

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS memory_persons (
                memory_id TEXT NOT NULL,
                person_id TEXT NOT NULL,
                PRIMARY KEY (memory_id, person_id),
                FOREIGN KEY (memory_id) REFERENCES memories(id) ON DELETE CASCADE
            )
        """
        )

        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_memory_persons_person ON memory_persons(person_id)"
        )

        await self.connection.commit()

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def get_person(self, person_id: str) -> Person | None:
        await self.connect()

        rows = await self._query("SELECT document FROM persons WHERE id = ?", (person_id,))
        row = rows[0] if rows else None

        if not row:
            return None

        return self._decode(row[0], Person)

    async def get_memory(self, memory_id: str) -> Memory | None:
        await self.connect()

        rows = await self._query("SELECT document FROM memories WHERE id = ?", (memory_id,))
        row = rows[0] if rows else None

        if not row:
            return None

        return self._decode(row[0], Memory)

    async def list_persons(self, include_tombstoned: bool = False) -> list[Person]:
        await self.connect()

        query = "SELECT document FROM persons"
        if not include_tombstoned:
            query += " WHERE tombstoned = 0"
        query += " ORDER BY id"

        rows = await self._query(query)

        return [self._decode(row[0], Person) for row in rows]

    async def list_memories(
        self, person_id: str | None = None, include_tombstoned: bool = False
    ) -> list[Memory]:
        await self.connect()

        query = "SELECT m.document FROM memories m"
        params = []

        if person_id is not None:
            query += " JOIN memory_persons mp ON mp.memory_id = m.id WHERE mp.person_id = ?"
            params.append(person_id)
        else:
            query += " WHERE 1=1"

        if not include_tombstoned:
            query += " AND m.tombstoned = 0"

        query += " ORDER BY m.id"

        rows = await self._query(query, params)

        return [self._decode(row[0], Memory) for row in rows]

    # ═══════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════

    async def save(
        self,
        persons: list[Person] | None = None,
        memories: list[Memory] | None = None,
    ) -> None:
        await self.connect()

        async with self._lock:
            await self._write_batch(persons or [], memories or [])

    async def _write_batch(self, persons: list[Person], memories: list[Memory]) -> None:
        try:
            for person in persons:
                await self.connection.execute(
                    """
                    INSERT OR REPLACE INTO persons (id, version, tombstoned, document)
                    VALUES (?, ?, ?, ?)
                    """,
                    (person.id, person.version, int(person.tombstoned), canonicalize(person)),
                )

            for memory in memories:
                await self.connection.execute(
                    """
                    INSERT OR REPLACE INTO memories (id, version, tombstoned, document)
                    VALUES (?, ?, ?, ?)
                    """,
                    (memory.id, memory.version, int(memory.tombstoned), canonicalize(memory)),
                )
                await self.connection.execute(
                    "DELETE FROM memory_persons WHERE memory_id = ?", (memory.id,)
                )
                await self.connection.executemany(
                    "INSERT INTO memory_persons (memory_id, person_id) VALUES (?, ?)",
                    [(memory.id, person_id) for person_id in memory.person_ids],
                )

            await self.connection.commit()
        except Exception as e:
            await self.connection.rollback()
            logger.bind(
                persons=[p.id for p in persons],
                memories=[m.id for m in memories],
            ).error(f"Graph batch write failed: {e}")
            raise GraphStoreError(f"Failed to save graph batch: {e}") from e

    async def _query(self, query: str, params: tuple | list = ()) -> list:
        async with self._lock:
            cursor = await self.connection.execute(query, params)
            return await cursor.fetchall()

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _decode(self, document: bytes, expected: type) -> Person | Memory:
        try:
            entity = parse(document)
        except MalformedError as e:
            raise GraphStoreError(f"Stored document is corrupt: {e.message}", e.context) from e
        if not isinstance(entity, expected):
            raise GraphStoreError(
                f"Stored document has kind {type(entity).__name__}, expected {expected.__name__}",
                context={"entity_id": entity.id},
            )
        return entity
