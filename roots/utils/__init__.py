"""Utility modules for the Roots archive."""

from roots.utils.exceptions import (
    AnchorPending,
    ArchiveError,
    ChangeLogError,
    ConfigurationError,
    CycleDetected,
    DepthExceeded,
    GraphStoreError,
    IntegrityViolation,
    InvariantViolation,
    LedgerUnavailable,
    MalformedError,
    NotFoundError,
    RootsError,
    StoreUnavailable,
    SuspiciousOrdering,
    ValidationError,
)
from roots.utils.id_generator import generate_memory_id, generate_person_id, generate_tx_ref
from roots.utils.locks import KeyedLock
from roots.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_person_id",
    "generate_memory_id",
    "generate_tx_ref",
    # Concurrency
    "KeyedLock",
    # Exceptions
    "RootsError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "GraphStoreError",
    "ChangeLogError",
    "InvariantViolation",
    "CycleDetected",
    "DepthExceeded",
    "MalformedError",
    "ArchiveError",
    "IntegrityViolation",
    "SuspiciousOrdering",
    "StoreUnavailable",
    "LedgerUnavailable",
    "AnchorPending",
]
