"""
Ethereum ledger anchoring snapshots in a RootsRegistry contract via web3.py.

The registry keeps persons and memories in separate namespaces. Each entry
holds the latest content id, the creating address and the creation time;
the contract getters expose only the current state, so transaction
references for earlier anchors come from the receipts this process sent.
"""

import asyncio
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any, TypeVar

from web3 import AsyncHTTPProvider, AsyncWeb3

from roots.core.hashing import is_content_id
from roots.core.ledger.base import Ledger
from roots.models.archive import AnchorReceipt, EntityKind
from roots.utils.exceptions import ConfigurationError, IntegrityViolation, LedgerUnavailable
from roots.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _function(name: str, inputs: list[tuple[str, str]]) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "nonpayable",
        "inputs": [{"name": arg, "type": typ} for arg, typ in inputs],
        "outputs": [],
    }


def _getter(name: str, arg: str, components: list[tuple[str, str]]) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": arg, "type": "string"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [{"name": n, "type": t} for n, t in components],
            }
        ],
    }


def _listing(name: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "string[]"}],
    }


ROOTS_REGISTRY_ABI = [
    _function("registerPerson", [("personId", "string"), ("ipfsHash", "string")]),
    _function(
        "registerMemory",
        [("memoryId", "string"), ("personId", "string"), ("ipfsHash", "string")],
    ),
    _function("updatePerson", [("personId", "string"), ("newIpfsHash", "string")]),
    _function("updateMemory", [("memoryId", "string"), ("newIpfsHash", "string")]),
    _getter(
        "getPerson",
        "personId",
        [("ipfsHash", "string"), ("creator", "address"), ("createdAt", "uint256"), ("exists", "bool")],
    ),
    _getter(
        "getMemory",
        "memoryId",
        [
            ("ipfsHash", "string"),
            ("personId", "string"),
            ("creator", "address"),
            ("createdAt", "uint256"),
            ("exists", "bool"),
        ],
    ),
    _listing("getUserPersons"),
    _listing("getUserMemories"),
]

# getter, register, update
_FUNCTIONS = {
    EntityKind.PERSON: ("getPerson", "registerPerson", "updatePerson"),
    EntityKind.MEMORY: ("getMemory", "registerMemory", "updateMemory"),
}
_LISTINGS = {EntityKind.PERSON: "getUserPersons", EntityKind.MEMORY: "getUserMemories"}


class EthereumLedger(Ledger):
    """
    Ledger backed by a RootsRegistry contract.

    ``anchor`` registers an entity the first time it is seen and updates
    it afterwards, then waits for the transaction receipt. The receipt's
    transaction hash becomes ``tx_ref`` and the block timestamp becomes
    ``anchored_at``.

    Transactions are signed locally when ``private_key`` is given.
    Otherwise they are sent from ``account`` (or the node's first
    account), which the node must manage. Anchors are serialized so
    nonces stay in order.
    """

    def __init__(
        self,
        rpc_url: str = "http://localhost:8545",
        contract_address: str | None = None,
        private_key: str | None = None,
        account: str | None = None,
        timeout: float = 60.0,
        web3: AsyncWeb3 | None = None,
        contract: Any | None = None,
    ):
        """
        Initialize Ethereum ledger.

        Args:
            rpc_url: JSON-RPC endpoint of the node
            contract_address: Deployed RootsRegistry address
            private_key: Key used to sign anchor transactions locally
            account: Sender address for node-managed accounts
            timeout: Seconds to wait for a transaction receipt
            web3: Optional preconfigured AsyncWeb3 (tests inject a mock)
            contract: Optional preconfigured contract object
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.w3 = web3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))

        if contract is None:
            if not contract_address:
                raise ConfigurationError("No RootsRegistry contract address configured")
            contract = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(contract_address),
                abi=ROOTS_REGISTRY_ABI,
            )
        self.contract = contract
        self.contract_address = contract_address

        self.signer = self.w3.eth.account.from_key(private_key) if private_key else None
        self.account = self.signer.address if self.signer is not None else account

        self.receipts: dict[str, list[AnchorReceipt]] = {}
        self._write_lock = asyncio.Lock()

    async def anchor(
        self,
        entity_id: str,
        content_id: str,
        kind: EntityKind = EntityKind.PERSON,
        subject_id: str | None = None,
    ) -> AnchorReceipt:
        getter, register, update = _FUNCTIONS[kind]
        context = {"entity_id": entity_id, "content_id": content_id, "kind": kind.value}

        async with self._write_lock:
            record = await self._chain(self._get(getter, entity_id), getter, context)
            if record[-1]:
                name, args = update, (entity_id, content_id)
            elif kind == EntityKind.MEMORY:
                name, args = register, (entity_id, subject_id or "", content_id)
            else:
                name, args = register, (entity_id, content_id)

            call = getattr(self.contract.functions, name)(*args)
            tx_hash = await self._chain(self._send(call), name, context)
            tx_receipt = await self._chain(
                self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout),
                f"{name} receipt",
                context,
            )
            tx_ref = AsyncWeb3.to_hex(tx_receipt["transactionHash"])
            if tx_receipt["status"] != 1:
                logger.bind(**context, tx_ref=tx_ref).error(f"Ethereum {name} reverted")
                raise LedgerUnavailable(
                    f"Transaction {tx_ref} anchoring {entity_id} reverted",
                    context={**context, "tx_ref": tx_ref},
                )

            block = await self._chain(
                self.w3.eth.get_block(tx_receipt["blockNumber"]), "get_block", context
            )
            receipt = AnchorReceipt(
                entity_id=entity_id,
                content_id=content_id,
                anchored_at=datetime.fromtimestamp(block["timestamp"], UTC),
                tx_ref=tx_ref,
            )

        self.receipts.setdefault(entity_id, []).append(receipt)
        logger.bind(**context, tx_ref=tx_ref).info(f"Anchored {entity_id} on chain")
        return receipt

    async def lookup(self, entity_id: str) -> AnchorReceipt | None:
        context = {"entity_id": entity_id}
        for getter, _, _ in _FUNCTIONS.values():
            record = await self._chain(self._get(getter, entity_id), getter, context)
            if record[-1]:
                return self._to_receipt(entity_id, record)
        return None

    async def history(self, entity_id: str) -> list[AnchorReceipt]:
        known = self.receipts.get(entity_id)
        if known:
            return list(known)
        latest = await self.lookup(entity_id)
        return [latest] if latest is not None else []

    async def entities_of(self, address: str, kind: EntityKind = EntityKind.PERSON) -> list[str]:
        """Entity ids registered by ``address``, as recorded by the contract."""
        name = _LISTINGS[kind]
        call = getattr(self.contract.functions, name)(AsyncWeb3.to_checksum_address(address))
        return list(await self._chain(call.call(), name, {"address": address}))

    async def close(self) -> None:
        provider = self.w3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    def _get(self, getter: str, entity_id: str) -> Awaitable[tuple]:
        return getattr(self.contract.functions, getter)(entity_id).call()

    async def _send(self, call: Any) -> bytes:
        if self.signer is not None:
            tx = await call.build_transaction(
                {
                    "from": self.signer.address,
                    "nonce": await self.w3.eth.get_transaction_count(
                        self.signer.address, "pending"
                    ),
                }
            )
            signed = self.signer.sign_transaction(tx)
            return await self.w3.eth.send_raw_transaction(signed.raw_transaction)

        if self.account is None:
            accounts = await self.w3.eth.accounts
            if not accounts:
                raise LedgerUnavailable("Node manages no accounts; configure a private key")
            self.account = accounts[0]
        return await call.transact({"from": self.account})

    async def _chain(self, call: Awaitable[T], name: str, context: dict) -> T:
        try:
            return await call
        except LedgerUnavailable:
            raise
        except Exception as e:
            logger.bind(**context, rpc_url=self.rpc_url).error(f"Ethereum {name} failed: {e}")
            raise LedgerUnavailable(f"Ethereum {name} failed: {e}", context=context) from e

    def _to_receipt(self, entity_id: str, record: tuple) -> AnchorReceipt:
        content_id = record[0]
        if not is_content_id(content_id):
            raise IntegrityViolation(
                f"Ledger entry for {entity_id} does not hold a content id",
                context={"entity_id": entity_id, "ledger_value": content_id},
            )

        known = self.receipts.get(entity_id)
        if known and known[-1].content_id == content_id:
            return known[-1]

        # Anchored by another process: only the registry's own fields are known
        return AnchorReceipt(
            entity_id=entity_id,
            content_id=content_id,
            anchored_at=datetime.fromtimestamp(record[-2], UTC),
            tx_ref=f"{self.contract_address}:{entity_id}",
        )
