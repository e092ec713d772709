"""In-process ledger."""

from collections.abc import Callable
from datetime import datetime

from roots.core.ledger.base import Ledger
from roots.models.archive import AnchorReceipt, EntityKind
from roots.models.common import utc_now
from roots.utils.id_generator import generate_tx_ref


class InMemoryLedger(Ledger):
    """
    List-backed append-only ledger.

    ``clock`` supplies anchor timestamps; tests inject a fixed or
    misbehaving clock to exercise ordering checks.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.receipts: dict[str, list[AnchorReceipt]] = {}
        self.sequence = 0

    async def anchor(
        self,
        entity_id: str,
        content_id: str,
        kind: EntityKind = EntityKind.PERSON,
        subject_id: str | None = None,
    ) -> AnchorReceipt:
        self.sequence += 1
        receipt = AnchorReceipt(
            entity_id=entity_id,
            content_id=content_id,
            anchored_at=self.clock(),
            tx_ref=generate_tx_ref(entity_id, content_id, self.sequence),
        )
        self.receipts.setdefault(entity_id, []).append(receipt)
        return receipt

    async def lookup(self, entity_id: str) -> AnchorReceipt | None:
        history = self.receipts.get(entity_id)
        return history[-1] if history else None

    async def history(self, entity_id: str) -> list[AnchorReceipt]:
        return list(self.receipts.get(entity_id, []))

    async def close(self) -> None:
        pass
