"""
Archive bookkeeping models: content records, anchor receipts, change log
entries and verification results.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roots.models.common import check_content_id, ensure_utc, utc_now


class EntityKind(str, Enum):
    """Kinds of archived entities."""

    PERSON = "person"
    MEMORY = "memory"


class ContentRecord(BaseModel):
    """
    Local record of a blob pushed to the content store.

    ``location`` is the token the store returned for the bytes; it is
    what ``ContentStore.get`` expects. For stores that address by the
    same SHA-256 id it equals ``content_id``.
    """

    model_config = ConfigDict(frozen=True)

    content_id: str
    size: int = Field(..., ge=0)
    media_type: str
    location: str = Field(..., min_length=1)
    stored_at: datetime = Field(default_factory=utc_now)

    @field_validator("content_id")
    @classmethod
    def content_id_format(cls, value: str) -> str:
        return check_content_id(value)

    @field_validator("stored_at")
    @classmethod
    def utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class AnchorReceipt(BaseModel):
    """Ledger proof that ``content_id`` was the state of ``entity_id`` at ``anchored_at``."""

    model_config = ConfigDict(frozen=True)

    entity_id: str = Field(..., min_length=1)
    content_id: str
    anchored_at: datetime
    tx_ref: str = Field(..., min_length=1)

    @field_validator("content_id")
    @classmethod
    def content_id_format(cls, value: str) -> str:
        return check_content_id(value)

    @field_validator("anchored_at")
    @classmethod
    def utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ChangeLogEntry(BaseModel):
    """
    One committed, anchored snapshot of an entity.

    ``previous_content_id`` links each entry to the entity's prior entry,
    forming a singly linked history. The remaining archive fields allow the
    receipt and content indexes to be rebuilt from the log alone.
    """

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(default=0, ge=0, description="Assigned by the log on append")
    entity_id: str = Field(..., min_length=1)
    entity_kind: EntityKind
    content_id: str
    timestamp: datetime
    actor_id: str = Field(..., min_length=1)
    previous_content_id: str | None = None

    tx_ref: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    media_type: str

    @field_validator("content_id")
    @classmethod
    def content_id_format(cls, value: str) -> str:
        return check_content_id(value)

    @field_validator("timestamp")
    @classmethod
    def utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_receipt(self) -> AnchorReceipt:
        return AnchorReceipt(
            entity_id=self.entity_id,
            content_id=self.content_id,
            anchored_at=self.timestamp,
            tx_ref=self.tx_ref,
        )

    def to_content_record(self) -> ContentRecord:
        return ContentRecord(
            content_id=self.content_id,
            size=self.size,
            media_type=self.media_type,
            location=self.location,
            stored_at=self.timestamp,
        )


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    VIOLATION = "violation"


class VerificationResult(BaseModel):
    """Outcome of checking fetched bytes against an anchor receipt."""

    model_config = ConfigDict(frozen=True)

    status: VerificationStatus
    entity_id: str
    expected_content_id: str
    computed_content_id: str
    reason: str | None = None
    ordering_warning: str | None = None

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED


class AnchorGap(BaseModel):
    """A change log entry without a ledger anchor, or the reverse."""

    model_config = ConfigDict(frozen=True)

    kind: str  # unanchored_entry, unlogged_receipt
    content_id: str
    tx_ref: str | None = None


class AuditReport(BaseModel):
    """Provenance audit of one entity: log history cross-checked with the ledger."""

    entity_id: str
    entries: list[ChangeLogEntry] = Field(default_factory=list)
    receipts: list[AnchorReceipt] = Field(default_factory=list)
    gaps: list[AnchorGap] = Field(default_factory=list)
    broken_links: list[int] = Field(default_factory=list, description="Entry sequences")
    ordering_warnings: list[str] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.gaps or self.broken_links or self.ordering_warnings)
