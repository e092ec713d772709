"""
ID generation utilities for the Roots archive.

Provides consistent ID generation for all entity types:
- Persons: person_xxx
- Memories: mem_xxx
- Ledger transactions: 0x + 64 hex characters
"""

import hashlib
from uuid import uuid4


def generate_person_id() -> str:
    """
    Generate unique Person ID.

    Returns:
        ID in format "person_xxx" where xxx is 12 hex characters
    """
    return f"person_{uuid4().hex[:12]}"


def generate_memory_id() -> str:
    """
    Generate unique Memory ID.

    Returns:
        ID in format "mem_xxx" where xxx is 12 hex characters
    """
    return f"mem_{uuid4().hex[:12]}"


def generate_tx_ref(entity_id: str, content_id: str, sequence: int) -> str:
    """
    Derive a transaction reference for a local ledger anchor.

    Args:
        entity_id: Anchored entity
        content_id: Anchored content identifier
        sequence: Position of the anchor in the ledger

    Returns:
        Reference in format "0x" + 64 hex characters
    """
    material = f"{sequence}:{entity_id}:{content_id}".encode()
    return "0x" + hashlib.sha256(material).hexdigest()
