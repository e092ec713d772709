"""
Base interface for content-addressed blob storage.
"""

from abc import ABC, abstractmethod


class ContentStore(ABC):
    """
    Abstract base class for content store implementations.

    The store is an external, shared, append-only service. ``put`` returns
    a storage token; callers keep it in a ContentRecord and pass it back to
    ``get`` and ``pin``. Tokens need not equal the archive's content ids.

    ``content_id_tokens`` is True for stores whose tokens are the content
    ids themselves, so a blob can be located without a ContentRecord.
    """

    content_id_tokens: bool = False

    async def initialize(self) -> None:
        """Prepare the store for use."""
        pass

    @abstractmethod
    async def put(self, data: bytes) -> str:
        """
        Store bytes.

        Args:
            data: Blob to store

        Returns:
            Storage token for the blob

        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def get(self, token: str) -> bytes:
        """
        Fetch bytes by storage token.

        Raises:
            NotFoundError: If the store has no such blob
            StoreUnavailable: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def pin(self, token: str) -> None:
        """
        Ask the store to keep the blob permanently.

        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass
