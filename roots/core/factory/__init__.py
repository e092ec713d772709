"""
Factory modules for creating archive components.

Provides modular factories for the graph backend, content store, ledger
and change log.
"""

from roots.core.factory.archive_factory import ChangeLogFactory, ContentStoreFactory, LedgerFactory
from roots.core.factory.graph_factory import GraphBackendFactory

__all__ = [
    "GraphBackendFactory",
    "ContentStoreFactory",
    "LedgerFactory",
    "ChangeLogFactory",
]
