"""
Base interfaces for family graph persistence.

The backend only stores and loads entity versions; all invariant checks
live in FamilyGraph, which hands the backend complete, already validated
batches.
"""

from abc import ABC, abstractmethod

from roots.models.memory import Memory
from roots.models.person import Person


class GraphBackend(ABC):
    """Abstract base class for graph storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the backend (create tables/schema)."""
        pass

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_person(self, person_id: str) -> Person | None:
        """
        Retrieve a person by ID.

        Args:
            person_id: Person identifier

        Returns:
            Person or None if not found
        """
        pass

    @abstractmethod
    async def get_memory(self, memory_id: str) -> Memory | None:
        """
        Retrieve a memory by ID.

        Args:
            memory_id: Memory identifier

        Returns:
            Memory or None if not found
        """
        pass

    @abstractmethod
    async def list_persons(self, include_tombstoned: bool = False) -> list[Person]:
        """List persons ordered by ID."""
        pass

    @abstractmethod
    async def list_memories(
        self, person_id: str | None = None, include_tombstoned: bool = False
    ) -> list[Memory]:
        """
        List memories ordered by ID.

        Args:
            person_id: Only memories associated with this person
            include_tombstoned: Include logically deleted memories
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def save(
        self,
        persons: list[Person] | None = None,
        memories: list[Memory] | None = None,
    ) -> None:
        """
        Write a batch of entity versions atomically.

        Either every entity in the batch is stored or none is.

        Raises:
            GraphStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection to the backend."""
        pass


class ContentIndex(ABC):
    """Answers whether a content id has a successful archive record."""

    @abstractmethod
    async def has_content(self, content_id: str) -> bool:
        pass
