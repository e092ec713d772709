"""
Factory for creating graph backends.
"""

from roots.config import GraphConfig
from roots.core.graph_store.base import GraphBackend
from roots.core.graph_store.memory_backend import InMemoryGraphBackend
from roots.core.graph_store.sqlite_store import SQLiteGraphBackend
from roots.utils.exceptions import ConfigurationError


class GraphBackendFactory:
    """Factory for creating graph backends from configuration."""

    @staticmethod
    def create(config: GraphConfig) -> GraphBackend:
        """
        Create graph backend from configuration.

        Args:
            config: Graph configuration

        Returns:
            Graph backend instance

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.backend == "memory":
            return InMemoryGraphBackend()
        elif config.backend == "sqlite":
            return SQLiteGraphBackend(db_path=config.db_path)
        else:
            raise ConfigurationError(
                f"Unsupported graph backend: {config.backend}",
                context={"backend": config.backend},
            )
