"""
Integrity verification of fetched content against ledger receipts.

Pure comparisons only: the verifier never performs I/O and never
raises for a mismatch. Callers decide how to surface a violation.
"""

from roots.core.hashing import identify
from roots.models.archive import AnchorReceipt, VerificationResult, VerificationStatus
from roots.utils.exceptions import SuspiciousOrdering


class IntegrityVerifier:
    """
    Checks that bytes hash to the content id a receipt anchors and that
    receipts for one entity move forward in time.
    """

    def verify(
        self,
        receipt: AnchorReceipt,
        data: bytes,
        expected_entity_id: str | None = None,
        previous: AnchorReceipt | None = None,
    ) -> VerificationResult:
        """
        Verify fetched bytes against a receipt.

        Args:
            receipt: Receipt the bytes were fetched for
            data: Fetched bytes
            expected_entity_id: Entity the caller asked for, if any
            previous: Earlier receipt of the same entity, for the ordering check

        Returns:
            VerificationResult; ``ordering_warning`` is set but the status
            stays VERIFIED when only the timestamps are out of order
        """
        computed = identify(data)
        reason = None

        if expected_entity_id is not None and receipt.entity_id != expected_entity_id:
            reason = (
                f"receipt anchors entity {receipt.entity_id}, expected {expected_entity_id}"
            )
        elif computed != receipt.content_id:
            reason = "fetched bytes do not hash to the anchored content id"

        warning = self.check_ordering(previous, receipt)

        return VerificationResult(
            status=VerificationStatus.VERIFIED if reason is None else VerificationStatus.VIOLATION,
            entity_id=receipt.entity_id,
            expected_content_id=receipt.content_id,
            computed_content_id=computed,
            reason=reason,
            ordering_warning=warning.message if warning else None,
        )

    def check_ordering(
        self, previous: AnchorReceipt | None, current: AnchorReceipt
    ) -> SuspiciousOrdering | None:
        """Return a SuspiciousOrdering when ``current`` predates ``previous``."""
        if previous is None or previous.entity_id != current.entity_id:
            return None
        if previous.tx_ref == current.tx_ref:
            return None
        if current.anchored_at < previous.anchored_at:
            return SuspiciousOrdering(
                f"Receipt {current.tx_ref} for {current.entity_id} is timestamped "
                f"before its predecessor {previous.tx_ref}",
                context={
                    "entity_id": current.entity_id,
                    "content_id": current.content_id,
                    "previous_anchored_at": previous.anchored_at.isoformat(),
                    "anchored_at": current.anchored_at.isoformat(),
                },
            )
        return None
