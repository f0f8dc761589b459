"""
Base data structures for contract transaction decoding.
Shared by the registry, decoders, policy checks and reporter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from hexbytes import HexBytes
from eth_utils import encode_hex, to_bytes


# ============================================================================
# ENUMS
# ============================================================================

class EntryKind(Enum):
    """ABI entry kinds that are indexed by the registry"""
    FUNCTION = "function"
    EVENT = "event"


class ReceiptStatus(Enum):
    """Transaction outcome recorded in its receipt"""
    SUCCESS = "success"
    FAILURE = "failure"


class FlagReason(Enum):
    """Why a transaction was flagged by policy checks"""
    VALUE_EXCEEDED = "value_exceeded"
    BLACKLISTED_SENDER = "blacklisted_sender"


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass(frozen=True)
class AbiParam:
    """Typed ABI parameter"""
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class AbiEntry:
    """
    Function or event descriptor.

    `selector` is the 4-byte function selector for functions and the 32-byte
    topic hash for events.
    """
    name: str
    kind: EntryKind
    inputs: Tuple[AbiParam, ...]
    signature: str
    selector: bytes


@dataclass(frozen=True)
class TransactionRecord:
    """Transaction as fetched from the node. Never mutated after fetch."""
    hash: str
    to: Optional[str]
    data: bytes
    value: int
    chain_id: Optional[int] = None
    nonce: Optional[int] = None
    block_number: Optional[int] = None
    node_sender: Optional[str] = None  # 'from' as reported by the node

    @property
    def is_contract_creation(self) -> bool:
        return self.to is None

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "TransactionRecord":
        """Build from an eth_getTransactionByHash result."""
        to = raw.get('to')
        return cls(
            hash=normalize_hash(raw.get('hash', '')),
            to=to if to else None,
            data=hex_to_bytes(raw.get('input') or raw.get('data') or '0x'),
            value=quantity_to_int(raw.get('value')),
            chain_id=quantity_to_int(raw['chainId']) if raw.get('chainId') is not None else None,
            nonce=quantity_to_int(raw['nonce']) if raw.get('nonce') is not None else None,
            block_number=quantity_to_int(raw['blockNumber']) if raw.get('blockNumber') is not None else None,
            node_sender=raw.get('from'),
        )


@dataclass(frozen=True)
class LogEntry:
    """Single receipt log"""
    address: str
    topics: Tuple[bytes, ...]
    data: bytes

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "LogEntry":
        return cls(
            address=raw.get('address', ''),
            topics=tuple(hex_to_bytes(t) for t in raw.get('topics') or []),
            data=hex_to_bytes(raw.get('data') or '0x'),
        )


@dataclass(frozen=True)
class ReceiptRecord:
    """Outcome record of a processed transaction"""
    transaction_hash: str
    status: ReceiptStatus
    logs: Tuple[LogEntry, ...] = ()
    gas_used: int = 0

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "ReceiptRecord":
        """Build from an eth_getTransactionReceipt result."""
        # Pre-Byzantium receipts carry a state root instead of a status
        status_raw = raw.get('status')
        ok = status_raw is None or quantity_to_int(status_raw) == 1
        return cls(
            transaction_hash=normalize_hash(raw.get('transactionHash', '')),
            status=ReceiptStatus.SUCCESS if ok else ReceiptStatus.FAILURE,
            logs=tuple(LogEntry.from_rpc(log) for log in raw.get('logs') or []),
            gas_used=quantity_to_int(raw.get('gasUsed')),
        )


@dataclass(frozen=True)
class BlacklistEntry:
    """Address flagged for monitoring"""
    address: str
    comment: str = ""
    date: str = ""


@dataclass(frozen=True)
class PolicyFlag:
    """Policy check hit. Reported only, never persisted."""
    transaction_hash: str
    reason: FlagReason
    detail: str

    def to_dict(self) -> dict:
        return {
            'transaction_hash': self.transaction_hash,
            'reason': self.reason.value,
            'detail': self.detail,
        }


@dataclass
class DecodedLogs:
    """Event names resolved from a receipt, plus the topics that missed"""
    names: List[str] = field(default_factory=list)
    misses: List[str] = field(default_factory=list)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def hex_to_bytes(value: Any) -> bytes:
    """Convert 0x-hex strings, HexBytes or bytes into plain bytes"""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    if text in ("", "0x"):
        return b""
    return bytes(HexBytes(text))


def quantity_to_int(value: Any) -> int:
    """Convert a JSON-RPC quantity (0x-hex string or int) into int"""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    if text.startswith(('0x', '0X')):
        return int(text, 16) if len(text) > 2 else 0
    return int(text)


def normalize_hash(value: Any) -> str:
    """Return a lower-case 0x-prefixed hash string"""
    if isinstance(value, (bytes, bytearray)):
        return encode_hex(value)
    text = str(value).lower()
    return text if text.startswith('0x') else f"0x{text}"


def selector_bytes(value: Any) -> bytes:
    """Accept a selector/topic as bytes or hex string"""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return to_bytes(hexstr=str(value))


def format_address(address: str, length: int = 8) -> str:
    """Format address for display"""
    if not address:
        return ""
    return f"{address[:length]}...{address[-4:]}"
