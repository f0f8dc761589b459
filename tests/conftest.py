"""
Shared fixtures: the sample ERC20-style ABI and an in-memory node.
"""
import os
import sys
import threading
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chain_monitor.config.monitor_config import MonitorConfig
from chain_monitor.services.blockchain_service import to_block_param
from chain_monitor.services.decoders.base import (
    LogEntry,
    ReceiptRecord,
    ReceiptStatus,
    TransactionRecord,
)
from chain_monitor.services.decoders.registry import AbiRegistry
from chain_monitor.services.errors import BlockNotFound, TransactionNotFound

RESOURCES = Path(__file__).resolve().parent.parent / 'resources'

CONTRACT = "0x2279B7A0a67DB372996a5FaB50D91eAA73d2eBe6"
OTHER_CONTRACT = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"

TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")
APPROVE_SELECTOR = bytes.fromhex("095ea7b3")
TRANSFER_FROM_SELECTOR = bytes.fromhex("23b872dd")
DEPOSIT_SELECTOR = bytes.fromhex("d0e30db0")

TRANSFER_TOPIC = bytes.fromhex("ddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef")
APPROVAL_TOPIC = bytes.fromhex("8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925")


def call_data(selector: bytes, words: int = 2) -> bytes:
    return selector + b"\x00" * (32 * words)


def make_tx(tx_hash: str, to, data: bytes = b"", value: int = 0) -> TransactionRecord:
    return TransactionRecord(hash=tx_hash, to=to, data=data, value=value, chain_id=31337)


def make_receipt(tx_hash: str, topics=(), status=ReceiptStatus.SUCCESS) -> ReceiptRecord:
    logs = tuple(LogEntry(address=CONTRACT, topics=tuple(t), data=b"") for t in topics)
    return ReceiptRecord(transaction_hash=tx_hash, status=status, logs=logs)


class FakeBlockchainService:
    """In-memory stand-in for BlockchainService"""

    def __init__(self):
        self.blocks = {}
        self.transactions = {}
        self.receipts = {}
        self.raw_transactions = {}
        self.failing = {}
        self.receipt_requests = []
        self._lock = threading.Lock()

    def add(self, block, tx: TransactionRecord, receipt: ReceiptRecord = None, raw: bytes = None):
        self.blocks.setdefault(to_block_param(block), []).append(tx.hash)
        self.transactions[tx.hash] = tx
        if receipt is not None:
            self.receipts[tx.hash] = receipt
        if raw is not None:
            self.raw_transactions[tx.hash] = raw

    def add_empty(self, block):
        self.blocks.setdefault(to_block_param(block), [])

    def list_transaction_hashes(self, block):
        key = to_block_param(block)
        if key not in self.blocks:
            raise BlockNotFound(block)
        return list(self.blocks[key])

    def get_transaction(self, tx_hash):
        if tx_hash in self.failing:
            raise self.failing[tx_hash]
        if tx_hash not in self.transactions:
            raise TransactionNotFound(tx_hash)
        return self.transactions[tx_hash]

    def get_receipt(self, tx_hash):
        with self._lock:
            self.receipt_requests.append(tx_hash)
        if tx_hash not in self.receipts:
            raise TransactionNotFound(tx_hash)
        return self.receipts[tx_hash]

    def get_raw_transaction(self, tx_hash):
        if tx_hash not in self.raw_transactions:
            raise TransactionNotFound(tx_hash)
        return self.raw_transactions[tx_hash]

    def close(self):
        pass


@pytest.fixture
def abi_text():
    return (RESOURCES / 'abi.json').read_text(encoding='utf-8')


@pytest.fixture
def registry(abi_text):
    return AbiRegistry.build(abi_text)


@pytest.fixture
def config():
    return MonitorConfig(
        node_url="http://127.0.0.1:8545",
        contract_address=CONTRACT,
        chain_id=31337,
        value_limit_wei=10_000_000_000,
        max_workers=4,
        blacklist_path=None,
    )


@pytest.fixture
def service():
    return FakeBlockchainService()
