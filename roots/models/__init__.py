"""
Data models for the Roots archive.

Two layers:
1. Family graph: Person, Memory and the relationship edges between persons
2. Archive bookkeeping: ContentRecord, AnchorReceipt, ChangeLogEntry

Core models:
- Person, Gender: graph nodes with mirrored parent/child/spouse edges
- Memory: stories and media attached to persons
- RelationshipKind, CommitEvent: graph commands and their results
- ContentRecord, AnchorReceipt, ChangeLogEntry: immutable archive records
- VerificationResult, AuditReport: integrity checks
"""

from roots.models.archive import (
    AnchorGap,
    AnchorReceipt,
    AuditReport,
    ChangeLogEntry,
    ContentRecord,
    EntityKind,
    VerificationResult,
    VerificationStatus,
)
from roots.models.memory import Memory
from roots.models.person import Gender, Person
from roots.models.relationships import CommitEvent, RelationshipKind

Entity = Person | Memory

__all__ = [
    # Graph models
    "Person",
    "Gender",
    "Memory",
    "Entity",
    "RelationshipKind",
    "CommitEvent",
    # Archive models
    "EntityKind",
    "ContentRecord",
    "AnchorReceipt",
    "ChangeLogEntry",
    "VerificationStatus",
    "VerificationResult",
    "AnchorGap",
    "AuditReport",
]
