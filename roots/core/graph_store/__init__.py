"""
Family graph store for the Roots archive.

Provides the invariant-enforcing FamilyGraph and its persistence backends.

Available backends:
- InMemoryGraphBackend: Process-local, for tests and ephemeral use
- SQLiteGraphBackend: Durable local storage via aiosqlite
"""

from roots.core.graph_store.base import ContentIndex, GraphBackend
from roots.core.graph_store.family_graph import FamilyGraph
from roots.core.graph_store.memory_backend import InMemoryGraphBackend
from roots.core.graph_store.sqlite_store import SQLiteGraphBackend

__all__ = [
    "ContentIndex",
    "GraphBackend",
    "FamilyGraph",
    "InMemoryGraphBackend",
    "SQLiteGraphBackend",
]
