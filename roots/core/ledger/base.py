"""
Base interface for the anchoring ledger.
"""

from abc import ABC, abstractmethod

from roots.models.archive import AnchorReceipt, EntityKind


class Ledger(ABC):
    """
    Abstract base class for anchoring ledgers.

    A ledger records (entity_id, content_id) pairs append-only. Each entity
    accumulates a history of receipts; the latest one is authoritative.
    """

    async def initialize(self) -> None:
        """Prepare the ledger for use."""
        pass

    @abstractmethod
    async def anchor(
        self,
        entity_id: str,
        content_id: str,
        kind: EntityKind = EntityKind.PERSON,
        subject_id: str | None = None,
    ) -> AnchorReceipt:
        """
        Anchor a content id against an entity id.

        Args:
            entity_id: Anchored entity
            content_id: Content identifier of the entity's snapshot
            kind: Entity kind, for ledgers that keep persons and memories apart
            subject_id: For memories, the person the memory is filed under

        Returns:
            Receipt with the ledger's timestamp and transaction reference

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
        """
        pass

    @abstractmethod
    async def lookup(self, entity_id: str) -> AnchorReceipt | None:
        """
        Latest receipt for an entity.

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
        """
        pass

    @abstractmethod
    async def history(self, entity_id: str) -> list[AnchorReceipt]:
        """
        All receipts for an entity, oldest first.

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass
