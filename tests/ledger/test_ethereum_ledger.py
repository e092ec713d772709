"""
Tests for the Ethereum ledger.

The RootsRegistry contract is replaced by an in-process fake with the same
function names and return shapes; AsyncWeb3 is a MagicMock serving
transaction receipts and blocks.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from roots.core.changelog import InMemoryChangeLog
from roots.core.content_store import InMemoryContentStore
from roots.core.hashing import identify
from roots.core.ledger import EthereumLedger
from roots.models import Memory, Person
from roots.models.archive import EntityKind
from roots.services import ArchiveService
from roots.utils.exceptions import ConfigurationError, IntegrityViolation, LedgerUnavailable

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
SENDER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
TX_HASH = bytes.fromhex("ab" * 32)
BLOCK_TIME = 1_704_067_200  # 2024-01-01T00:00:00Z

CID_1 = identify(b"v1")
CID_2 = identify(b"v2")


class FakeCall:
    def __init__(self, registry: "FakeRegistry", name: str, args: tuple):
        self.registry = registry
        self.name = name
        self.args = args

    async def call(self):
        if self.registry.failure is not None:
            raise self.registry.failure
        return self.registry.view(self.name, self.args)

    async def transact(self, tx: dict) -> bytes:
        self.registry.apply(self.name, self.args, tx["from"])
        return TX_HASH

    async def build_transaction(self, tx: dict) -> dict:
        return {**tx, "to": CONTRACT, "data": self.name}


class FakeFunctions:
    def __init__(self, registry: "FakeRegistry"):
        self._registry = registry

    def __getattr__(self, name: str):
        return lambda *args: FakeCall(self._registry, name, args)


class FakeRegistry:
    """Persons and memories keyed by id, as the registry contract stores them."""

    def __init__(self):
        self.persons: dict[str, tuple] = {}
        self.memories: dict[str, tuple] = {}
        self.sent: list[tuple] = []
        self.failure: Exception | None = None
        self.functions = FakeFunctions(self)

    def view(self, name: str, args: tuple):
        if name == "getPerson":
            return self.persons.get(args[0], ("", "0x" + "0" * 40, 0, False))
        if name == "getMemory":
            return self.memories.get(args[0], ("", "", "0x" + "0" * 40, 0, False))
        if name == "getUserPersons":
            return [k for k, v in self.persons.items() if v[1] == args[0]]
        if name == "getUserMemories":
            return [k for k, v in self.memories.items() if v[2] == args[0]]
        raise AssertionError(f"unexpected view {name}")

    def apply(self, name: str, args: tuple, sender: str) -> None:
        self.sent.append((name, args, sender))
        if name == "registerPerson":
            self.persons[args[0]] = (args[1], sender, BLOCK_TIME, True)
        elif name == "updatePerson":
            _, creator, created_at, _ = self.persons[args[0]]
            self.persons[args[0]] = (args[1], creator, created_at, True)
        elif name == "registerMemory":
            self.memories[args[0]] = (args[2], args[1], sender, BLOCK_TIME, True)
        elif name == "updateMemory":
            _, person_id, creator, created_at, _ = self.memories[args[0]]
            self.memories[args[0]] = (args[1], person_id, creator, created_at, True)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def web3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.wait_for_transaction_receipt = AsyncMock(
        return_value={"status": 1, "blockNumber": 7, "transactionHash": TX_HASH}
    )
    w3.eth.get_block = AsyncMock(return_value={"timestamp": BLOCK_TIME})
    w3.provider.disconnect = AsyncMock()
    return w3


@pytest.fixture
def eth_ledger(registry, web3) -> EthereumLedger:
    return EthereumLedger(
        contract_address=CONTRACT, account=SENDER, web3=web3, contract=registry
    )


@pytest.mark.unit
class TestAnchoring:
    async def test_register_then_update(self, eth_ledger, registry, web3):
        first = await eth_ledger.anchor("person_1", CID_1)
        second = await eth_ledger.anchor("person_1", CID_2)

        assert [(name, args) for name, args, _ in registry.sent] == [
            ("registerPerson", ("person_1", CID_1)),
            ("updatePerson", ("person_1", CID_2)),
        ]
        assert first.tx_ref == "0x" + "ab" * 32
        assert first.anchored_at == datetime(2024, 1, 1, tzinfo=UTC)
        assert await eth_ledger.lookup("person_1") == second
        assert await eth_ledger.history("person_1") == [first, second]
        web3.eth.get_block.assert_awaited_with(7)

    async def test_memory_filed_under_subject(self, eth_ledger, registry):
        receipt = await eth_ledger.anchor(
            "mem_1", CID_1, kind=EntityKind.MEMORY, subject_id="person_1"
        )

        assert registry.sent == [("registerMemory", ("mem_1", "person_1", CID_1), SENDER)]
        assert await eth_ledger.lookup("mem_1") == receipt

    async def test_reverted_transaction(self, eth_ledger, web3):
        web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0,
            "blockNumber": 7,
            "transactionHash": TX_HASH,
        }

        with pytest.raises(LedgerUnavailable, match="reverted") as exc_info:
            await eth_ledger.anchor("person_1", CID_1)

        assert exc_info.value.entity_id == "person_1"
        assert eth_ledger.receipts == {}

    async def test_rpc_failure_is_unavailable(self, eth_ledger, registry):
        registry.failure = ConnectionError("connection refused")

        with pytest.raises(LedgerUnavailable) as exc_info:
            await eth_ledger.anchor("person_1", CID_1)

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.content_id == CID_1
        assert registry.sent == []

    async def test_node_account_used_when_none_configured(self, registry, web3):
        async def accounts():
            return [OTHER]

        web3.eth.accounts = accounts()
        ledger = EthereumLedger(contract_address=CONTRACT, web3=web3, contract=registry)

        await ledger.anchor("person_1", CID_1)

        assert registry.sent[0][2] == OTHER
        assert ledger.account == OTHER

    async def test_signed_locally_with_private_key(self, registry, web3):
        signer = MagicMock(address=SENDER)
        signer.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")
        web3.eth.account.from_key.return_value = signer
        web3.eth.get_transaction_count = AsyncMock(return_value=3)
        web3.eth.send_raw_transaction = AsyncMock(return_value=TX_HASH)

        ledger = EthereumLedger(
            contract_address=CONTRACT, private_key="0x" + "11" * 32, web3=web3, contract=registry
        )
        receipt = await ledger.anchor("person_1", CID_1)

        (tx,), _ = signer.sign_transaction.call_args
        assert tx["from"] == SENDER
        assert tx["nonce"] == 3
        assert tx["data"] == "registerPerson"
        web3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")
        assert receipt.tx_ref == "0x" + "ab" * 32


@pytest.mark.unit
class TestReading:
    async def test_unknown_entity(self, eth_ledger):
        assert await eth_ledger.lookup("nobody") is None
        assert await eth_ledger.history("nobody") == []

    async def test_anchored_by_another_process(self, eth_ledger, registry):
        registry.persons["person_9"] = (CID_2, OTHER, BLOCK_TIME - 60, True)

        receipt = await eth_ledger.lookup("person_9")

        assert receipt.content_id == CID_2
        assert receipt.anchored_at == datetime(2023, 12, 31, 23, 59, tzinfo=UTC)
        assert receipt.tx_ref == f"{CONTRACT}:person_9"
        assert await eth_ledger.history("person_9") == [receipt]

    async def test_entry_without_content_id(self, eth_ledger, registry):
        registry.persons["person_9"] = ("QmYwAPJzv5CZsnAzt8auVZRn", OTHER, BLOCK_TIME, True)

        with pytest.raises(IntegrityViolation):
            await eth_ledger.lookup("person_9")

    async def test_entities_of_creator(self, eth_ledger):
        await eth_ledger.anchor("person_1", CID_1)
        await eth_ledger.anchor("mem_1", CID_2, kind=EntityKind.MEMORY, subject_id="person_1")

        assert await eth_ledger.entities_of(SENDER.lower()) == ["person_1"]
        assert await eth_ledger.entities_of(SENDER, EntityKind.MEMORY) == ["mem_1"]
        assert await eth_ledger.entities_of(OTHER) == []

    async def test_close_disconnects_provider(self, eth_ledger, web3):
        await eth_ledger.close()

        web3.provider.disconnect.assert_awaited_once()


@pytest.mark.integration
async def test_archive_service_on_chain(registry, web3, eth_ledger):
    service = ArchiveService(
        content_store=InMemoryContentStore(),
        ledger=eth_ledger,
        changelog=InMemoryChangeLog(),
        retry_delay=0.0,
    )
    await service.initialize()
    person = Person(id="person_1", name="Hanako")
    memory = Memory(id="mem_1", person_ids=["person_1", "person_2"], title="T", created_by="u")

    await service.commit(person)
    await service.commit(memory)

    assert registry.memories["mem_1"][1] == "person_1"
    assert await service.read_verified("person_1") == person
    assert await service.read_verified("mem_1") == memory


@pytest.mark.unit
def test_contract_address_required(web3):
    with pytest.raises(ConfigurationError):
        EthereumLedger(web3=web3)
