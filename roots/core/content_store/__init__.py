"""
Content store implementations.

Available backends:
- InMemoryContentStore: Process-local, tokens are SHA-256 content ids
- IPFSContentStore: Kubo RPC API, tokens are IPFS CIDs
"""

from roots.core.content_store.base import ContentStore
from roots.core.content_store.ipfs import IPFSContentStore
from roots.core.content_store.memory_store import InMemoryContentStore

__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "IPFSContentStore",
]
