"""
Blockchain Service Module

Fetches blocks, transactions and receipts from an EVM node, plus the chain
health metrics (block timing, gas, mempool depth) reported by the monitor.
The service holds no per-run state; caching within a run is the caller's job.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from eth_utils import is_hex

from ..config.monitor_config import MonitorConfig
from .decoders.base import (
    ReceiptRecord,
    TransactionRecord,
    hex_to_bytes,
    normalize_hash,
    quantity_to_int,
)
from .errors import BlockNotFound, ProtocolError, TransactionNotFound
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)

BLOCK_TAGS = {'latest', 'earliest', 'pending', 'safe', 'finalized'}

BlockIdentifier = Union[int, str]


def to_block_param(block: BlockIdentifier) -> str:
    """
    Normalize a block identifier to a JSON-RPC block parameter.

    Integers and decimal strings become hex quantities; tags and hex strings pass through.
    """
    if isinstance(block, bool):
        raise ValueError(f"Invalid block identifier: {block!r}")
    if isinstance(block, int):
        if block < 0:
            raise ValueError(f"Block number must be non-negative: {block}")
        return hex(block)
    text = str(block).strip()
    if text.lower() in BLOCK_TAGS:
        return text.lower()
    if text.startswith(('0x', '0X')) and is_hex(text):
        return hex(int(text, 16))
    if text.isdigit():
        return hex(int(text))
    raise ValueError(f"Invalid block identifier: {block!r}")


def is_target(tx: TransactionRecord, contract_address: str) -> bool:
    """True iff tx.to equals the contract address (case-insensitive). Creations never match."""
    if tx.to is None or not contract_address:
        return False
    return tx.to.lower() == contract_address.lower()


@dataclass
class ChainMetrics:
    """Global chain health snapshot"""
    block_number: int
    timestamp: int
    block_interval: Optional[int]  # seconds since parent block
    gas_limit: int
    gas_used: int
    size: int
    gas_price: int  # wei
    pending: Optional[int] = None
    queued: Optional[int] = None

    @property
    def gas_utilization(self) -> float:
        return self.gas_used / self.gas_limit if self.gas_limit else 0.0

    def to_dict(self) -> dict:
        return {
            'block_number': self.block_number,
            'timestamp': self.timestamp,
            'block_interval': self.block_interval,
            'gas_limit': self.gas_limit,
            'gas_used': self.gas_used,
            'gas_utilization': round(self.gas_utilization, 4),
            'size': self.size,
            'gas_price_wei': str(self.gas_price),
            'pending': self.pending,
            'queued': self.queued,
        }


class BlockchainService:
    """
    Node-facing fetcher for blocks, transactions, receipts and metrics.
    """

    def __init__(self, rpc: RpcClient, include_txpool: bool = True):
        self.rpc = rpc
        self.include_txpool = include_txpool

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "BlockchainService":
        rpc = RpcClient(
            config.node_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
        )
        logger.info(f"Connecting to node: {config.node_url[:50]}...")
        return cls(rpc, include_txpool=config.include_txpool)

    # ------------------------------------------------------------------ blocks

    def get_block(self, block: BlockIdentifier, full_transactions: bool = False) -> dict:
        param = to_block_param(block)
        result = self.rpc.call('eth_getBlockByNumber', [param, full_transactions])
        if not result:
            raise BlockNotFound(block)
        return result

    def list_transaction_hashes(self, block: BlockIdentifier) -> List[str]:
        """
        Transaction hashes of a block (bodies are not requested).

        Raises:
            BlockNotFound: node has no such block
            TransportError / ProtocolError: node failure
        """
        result = self.get_block(block, full_transactions=False)
        hashes = []
        for tx in result.get('transactions') or []:
            if isinstance(tx, str):
                hashes.append(normalize_hash(tx))
            elif isinstance(tx, dict) and tx.get('hash'):
                hashes.append(normalize_hash(tx['hash']))
        logger.debug(f"Block {block}: {len(hashes)} transactions")
        return hashes

    def get_block_number(self) -> int:
        return quantity_to_int(self.rpc.call('eth_blockNumber', []))

    # ------------------------------------------------------------ transactions

    def get_transaction(self, tx_hash: str) -> TransactionRecord:
        result = self.rpc.call('eth_getTransactionByHash', [tx_hash])
        if not result:
            raise TransactionNotFound(tx_hash)
        return TransactionRecord.from_rpc(result)

    def get_receipt(self, tx_hash: str) -> ReceiptRecord:
        result = self.rpc.call('eth_getTransactionReceipt', [tx_hash])
        if not result:
            raise TransactionNotFound(tx_hash)
        return ReceiptRecord.from_rpc(result)

    def get_raw_transaction(self, tx_hash: str) -> bytes:
        """Signed payload, used for sender recovery"""
        result = self.rpc.call('eth_getRawTransactionByHash', [tx_hash])
        raw = hex_to_bytes(result)
        if not raw:
            raise TransactionNotFound(tx_hash)
        return raw

    # ----------------------------------------------------------------- metrics

    def get_gas_price(self) -> int:
        return quantity_to_int(self.rpc.call('eth_gasPrice', []))

    def get_txpool_status(self) -> tuple:
        """(pending, queued) transaction counts"""
        result = self.rpc.call('txpool_status', [])
        if not isinstance(result, dict):
            raise ProtocolError("txpool_status returned an unexpected payload")
        return quantity_to_int(result.get('pending')), quantity_to_int(result.get('queued'))

    def get_chain_metrics(self) -> ChainMetrics:
        """
        Snapshot of the chain head.

        Block interval is measured against the parent block; it is None for
        the genesis block.
        """
        height = self.get_block_number()
        block = self.get_block(height)
        timestamp = quantity_to_int(block.get('timestamp'))

        interval = None
        if height > 0:
            parent = self.get_block(height - 1)
            interval = timestamp - quantity_to_int(parent.get('timestamp'))

        pending = queued = None
        if self.include_txpool:
            pending, queued = self.get_txpool_status()

        metrics = ChainMetrics(
            block_number=height,
            timestamp=timestamp,
            block_interval=interval,
            gas_limit=quantity_to_int(block.get('gasLimit')),
            gas_used=quantity_to_int(block.get('gasUsed')),
            size=quantity_to_int(block.get('size')),
            gas_price=self.get_gas_price(),
            pending=pending,
            queued=queued,
        )
        logger.debug(f"Chain metrics at block {height}: {metrics.to_dict()}")
        return metrics

    def close(self):
        self.rpc.close()
