"""
Tests for IntegrityVerifier.
"""

from datetime import UTC, datetime, timedelta

import pytest

from roots.core.hashing import identify
from roots.models import AnchorReceipt, VerificationStatus
from roots.services import IntegrityVerifier
from roots.utils.exceptions import SuspiciousOrdering

DATA = b"roots-snapshot/1\n{}"
T0 = datetime(2024, 1, 1, tzinfo=UTC)


def receipt(content: bytes = DATA, at: datetime = T0, tx: str = "0x1", entity: str = "p1"):
    return AnchorReceipt(entity_id=entity, content_id=identify(content), anchored_at=at, tx_ref=tx)


@pytest.fixture
def verifier() -> IntegrityVerifier:
    return IntegrityVerifier()


@pytest.mark.unit
class TestVerify:
    """Tests for verify()."""

    def test_matching_bytes_verified(self, verifier):
        result = verifier.verify(receipt(), DATA, expected_entity_id="p1")

        assert result.verified
        assert result.status == VerificationStatus.VERIFIED
        assert result.computed_content_id == result.expected_content_id
        assert result.reason is None
        assert result.ordering_warning is None

    def test_tampered_bytes(self, verifier):
        result = verifier.verify(receipt(), DATA + b" ")

        assert not result.verified
        assert result.computed_content_id == identify(DATA + b" ")
        assert "hash" in result.reason

    def test_wrong_entity(self, verifier):
        result = verifier.verify(receipt(entity="p2"), DATA, expected_entity_id="p1")

        assert result.status == VerificationStatus.VIOLATION
        assert "p2" in result.reason

    def test_out_of_order_receipt_is_a_warning(self, verifier):
        previous = receipt(at=T0 + timedelta(hours=1), tx="0x1")
        current = receipt(at=T0, tx="0x2")

        result = verifier.verify(current, DATA, previous=previous)

        assert result.verified
        assert result.ordering_warning is not None

    def test_does_not_raise_on_violation(self, verifier):
        verifier.verify(receipt(), b"completely different")


@pytest.mark.unit
class TestCheckOrdering:
    """Tests for check_ordering()."""

    def test_no_previous(self, verifier):
        assert verifier.check_ordering(None, receipt()) is None

    def test_forward_in_time(self, verifier):
        previous = receipt(at=T0, tx="0x1")
        current = receipt(at=T0 + timedelta(seconds=1), tx="0x2")

        assert verifier.check_ordering(previous, current) is None

    def test_equal_timestamps_allowed(self, verifier):
        assert verifier.check_ordering(receipt(tx="0x1"), receipt(tx="0x2")) is None

    def test_backwards_in_time(self, verifier):
        previous = receipt(at=T0 + timedelta(minutes=5), tx="0x1")
        current = receipt(at=T0, tx="0x2")

        warning = verifier.check_ordering(previous, current)

        assert isinstance(warning, SuspiciousOrdering)
        assert warning.entity_id == "p1"

    def test_different_entities_ignored(self, verifier):
        previous = receipt(at=T0 + timedelta(minutes=5), tx="0x1", entity="p2")
        assert verifier.check_ordering(previous, receipt(tx="0x2")) is None

    def test_same_receipt_ignored(self, verifier):
        same = receipt()
        assert verifier.check_ordering(same, same) is None
