"""Tests for the backend factories."""

import pytest

from roots.config import ChangeLogConfig, ContentStoreConfig, GraphConfig, LedgerConfig
from roots.core.changelog import InMemoryChangeLog, SQLiteChangeLog
from roots.core.content_store import InMemoryContentStore, IPFSContentStore
from roots.core.factory import (
    ChangeLogFactory,
    ContentStoreFactory,
    GraphBackendFactory,
    LedgerFactory,
)
from roots.core.graph_store import InMemoryGraphBackend, SQLiteGraphBackend
from roots.core.ledger import EthereumLedger, InMemoryLedger, SQLiteLedger
from roots.utils.exceptions import ConfigurationError


@pytest.mark.unit
class TestGraphBackendFactory:
    def test_memory(self):
        assert isinstance(GraphBackendFactory.create(GraphConfig()), InMemoryGraphBackend)

    def test_sqlite(self, tmp_path):
        db_path = str(tmp_path / "graph.db")
        backend = GraphBackendFactory.create(GraphConfig(backend="sqlite", db_path=db_path))

        assert isinstance(backend, SQLiteGraphBackend)
        assert backend.db_path == db_path


@pytest.mark.unit
class TestContentStoreFactory:
    def test_memory(self):
        assert isinstance(ContentStoreFactory.create(ContentStoreConfig()), InMemoryContentStore)

    async def test_ipfs(self):
        store = ContentStoreFactory.create(
            ContentStoreConfig(
                backend="ipfs",
                url="http://ipfs.local:5001/",
                gateway_url="https://gw.example/ipfs/",
                timeout=3.0,
            )
        )
        try:
            assert isinstance(store, IPFSContentStore)
            assert store.url == "http://ipfs.local:5001"
            assert store.gateway_url == "https://gw.example/ipfs"
            assert store.timeout == 3.0
        finally:
            await store.close()


@pytest.mark.unit
class TestLedgerFactory:
    def test_memory(self):
        assert isinstance(LedgerFactory.create(LedgerConfig()), InMemoryLedger)

    def test_sqlite(self, tmp_path):
        ledger = LedgerFactory.create(
            LedgerConfig(backend="sqlite", db_path=str(tmp_path / "ledger.db"))
        )
        assert isinstance(ledger, SQLiteLedger)

    async def test_ethereum(self):
        ledger = LedgerFactory.create(
            LedgerConfig(
                backend="ethereum",
                rpc_url="http://chain.local:8545",
                contract_address="0x5fbdb2315678afecb367f032d93f642f64180aa3",
                account="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
                timeout=12.0,
            )
        )

        assert isinstance(ledger, EthereumLedger)
        assert ledger.rpc_url == "http://chain.local:8545"
        assert ledger.contract.address == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert ledger.account == "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        assert ledger.timeout == 12.0

    def test_ethereum_requires_contract(self):
        with pytest.raises(ConfigurationError, match="contract address"):
            LedgerFactory.create(LedgerConfig(backend="ethereum"))


@pytest.mark.unit
class TestChangeLogFactory:
    def test_memory(self):
        assert isinstance(ChangeLogFactory.create(ChangeLogConfig()), InMemoryChangeLog)

    def test_sqlite(self, tmp_path):
        log = ChangeLogFactory.create(
            ChangeLogConfig(backend="sqlite", db_path=str(tmp_path / "log.db"))
        )
        assert isinstance(log, SQLiteChangeLog)


@pytest.mark.unit
@pytest.mark.parametrize(
    "factory, config",
    [
        (GraphBackendFactory, GraphConfig(backend="neo4j")),
        (ContentStoreFactory, ContentStoreConfig(backend="s3")),
        (LedgerFactory, LedgerConfig(backend="fabric")),
        (ChangeLogFactory, ChangeLogConfig(backend="kafka")),
    ],
)
def test_unknown_backend(factory, config):
    with pytest.raises(ConfigurationError) as exc_info:
        factory.create(config)

    assert exc_info.value.context == {"backend": config.backend}
