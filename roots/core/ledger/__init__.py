"""
Anchoring ledger implementations.

Available backends:
- InMemoryLedger: Process-local
- SQLiteLedger: Durable local append-only ledger via aiosqlite
- EthereumLedger: RootsRegistry contract via web3.py
"""

from roots.core.ledger.base import Ledger
from roots.core.ledger.ethereum_ledger import EthereumLedger
from roots.core.ledger.memory_ledger import InMemoryLedger
from roots.core.ledger.sqlite_ledger import SQLiteLedger

__all__ = [
    "Ledger",
    "EthereumLedger",
    "InMemoryLedger",
    "SQLiteLedger",
]
