"""
Factories for the archive backends: content store, ledger and change log.
"""

from roots.config import ChangeLogConfig, ContentStoreConfig, LedgerConfig
from roots.core.changelog import ChangeLog, InMemoryChangeLog, SQLiteChangeLog
from roots.core.content_store import ContentStore, InMemoryContentStore, IPFSContentStore
from roots.core.ledger import EthereumLedger, InMemoryLedger, Ledger, SQLiteLedger
from roots.utils.exceptions import ConfigurationError


class ContentStoreFactory:
    """Factory for creating content stores from configuration."""

    @staticmethod
    def create(config: ContentStoreConfig) -> ContentStore:
        """
        Create content store from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.backend == "memory":
            return InMemoryContentStore()
        elif config.backend == "ipfs":
            return IPFSContentStore(
                url=config.url,
                gateway_url=config.gateway_url,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported content store backend: {config.backend}",
                context={"backend": config.backend},
            )


class LedgerFactory:
    """Factory for creating ledgers from configuration."""

    @staticmethod
    def create(config: LedgerConfig) -> Ledger:
        """
        Create ledger from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.backend == "memory":
            return InMemoryLedger()
        elif config.backend == "sqlite":
            return SQLiteLedger(db_path=config.db_path)
        elif config.backend == "ethereum":
            if not config.contract_address:
                raise ConfigurationError(
                    "Ethereum ledger requires a contract address",
                    context={"backend": config.backend},
                )
            return EthereumLedger(
                rpc_url=config.rpc_url,
                contract_address=config.contract_address,
                private_key=config.private_key,
                account=config.account,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported ledger backend: {config.backend}",
                context={"backend": config.backend},
            )


class ChangeLogFactory:
    """Factory for creating change logs from configuration."""

    @staticmethod
    def create(config: ChangeLogConfig) -> ChangeLog:
        """
        Create change log from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.backend == "memory":
            return InMemoryChangeLog()
        elif config.backend == "sqlite":
            return SQLiteChangeLog(db_path=config.db_path)
        else:
            raise ConfigurationError(
                f"Unsupported change log backend: {config.backend}",
                context={"backend": config.backend},
            )
