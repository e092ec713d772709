"""
SQLite append-only ledger using aiosqlite.

A local stand-in for an external anchoring chain: rows are only ever
inserted, and each receipt's transaction reference commits to its
sequence number, entity id and content id.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import aiosqlite

from roots.core.ledger.base import Ledger
from roots.models.archive import AnchorReceipt, EntityKind
from roots.models.common import utc_now
from roots.utils.exceptions import LedgerUnavailable
from roots.utils.id_generator import generate_tx_ref
from roots.utils.logger import get_logger

logger = get_logger(__name__)


class SQLiteLedger(Ledger):
    """SQLite-backed anchoring ledger."""

    def __init__(
        self,
        db_path: str = "data/roots_ledger.db",
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize SQLite ledger.

        Args:
            db_path: Path to SQLite database file
            clock: Source of anchor timestamps
        """
        self.db_path = db_path
        self.clock = clock
        self.connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        if self.connection is None:
            try:
                self.connection = await aiosqlite.connect(self.db_path)
                await self.connection.execute("PRAGMA journal_mode = WAL")
                await self.connection.commit()
            except Exception as e:
                raise LedgerUnavailable(f"Failed to open ledger: {e}") from e

    async def initialize(self) -> None:
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS anchors (
                sequence INTEGER PRIMARY KEY,
                entity_id TEXT NOT NULL,
                content_id TEXT NOT NULL,
                anchored_at TEXT NOT NULL,
                tx_ref TEXT NOT NULL UNIQUE
            )
        """
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_anchors_entity ON anchors(entity_id, sequence)"
        )
        await self.connection.commit()

    async def anchor(
        self,
        entity_id: str,
        content_id: str,
        kind: EntityKind = EntityKind.PERSON,
        subject_id: str | None = None,
    ) -> AnchorReceipt:
        await self.connect()

        async with self._write_lock:
            try:
                cursor = await self.connection.execute(
                    "SELECT COALESCE(MAX(sequence), 0) + 1 FROM anchors"
                )
                (sequence,) = await cursor.fetchone()

                receipt = AnchorReceipt(
                    entity_id=entity_id,
                    content_id=content_id,
                    anchored_at=self.clock(),
                    tx_ref=generate_tx_ref(entity_id, content_id, sequence),
                )

                await self.connection.execute(
                    """
                    INSERT INTO anchors (sequence, entity_id, content_id, anchored_at, tx_ref)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        sequence,
                        receipt.entity_id,
                        receipt.content_id,
                        receipt.anchored_at.isoformat(),
                        receipt.tx_ref,
                    ),
                )
                await self.connection.commit()
            except Exception as e:
                await self.connection.rollback()
                logger.bind(entity_id=entity_id, content_id=content_id).error(
                    f"Ledger anchor failed: {e}"
                )
                raise LedgerUnavailable(
                    f"Failed to anchor {entity_id}: {e}",
                    context={"entity_id": entity_id, "content_id": content_id},
                ) from e

        return receipt

    async def lookup(self, entity_id: str) -> AnchorReceipt | None:
        rows = await self._select(
            "SELECT entity_id, content_id, anchored_at, tx_ref FROM anchors "
            "WHERE entity_id = ? ORDER BY sequence DESC LIMIT 1",
            entity_id,
        )
        return self._row_to_receipt(rows[0]) if rows else None

    async def history(self, entity_id: str) -> list[AnchorReceipt]:
        rows = await self._select(
            "SELECT entity_id, content_id, anchored_at, tx_ref FROM anchors "
            "WHERE entity_id = ? ORDER BY sequence",
            entity_id,
        )
        return [self._row_to_receipt(row) for row in rows]

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    async def _select(self, query: str, entity_id: str) -> list[tuple]:
        await self.connect()
        try:
            cursor = await self.connection.execute(query, (entity_id,))
            return await cursor.fetchall()
        except Exception as e:
            raise LedgerUnavailable(
                f"Ledger query failed: {e}", context={"entity_id": entity_id}
            ) from e

    @staticmethod
    def _row_to_receipt(row: tuple) -> AnchorReceipt:
        return AnchorReceipt(
            entity_id=row[0],
            content_id=row[1],
            anchored_at=datetime.fromisoformat(row[2]),
            tx_ref=row[3],
        )
