"""
Contract transaction decoding.

- base: data model shared across the pipeline
- registry: AbiRegistry (selector / topic hash lookup)
- call_decoder: decode_call, decode_logs
- abis: ABI and blacklist file loading
"""

from .base import (
    # Enums
    EntryKind,
    ReceiptStatus,
    FlagReason,
    # Dataclasses
    AbiParam,
    AbiEntry,
    TransactionRecord,
    LogEntry,
    ReceiptRecord,
    BlacklistEntry,
    PolicyFlag,
    DecodedLogs,
    # Helpers
    format_address,
)
from .registry import AbiRegistry
from .call_decoder import decode_call, decode_logs
from .abis import load_abi_file, load_blacklist_file

__all__ = [
    # Enums
    'EntryKind',
    'ReceiptStatus',
    'FlagReason',
    # Dataclasses
    'AbiParam',
    'AbiEntry',
    'TransactionRecord',
    'LogEntry',
    'ReceiptRecord',
    'BlacklistEntry',
    'PolicyFlag',
    'DecodedLogs',
    # Registry / decoding
    'AbiRegistry',
    'decode_call',
    'decode_logs',
    'load_abi_file',
    'load_blacklist_file',
    # Helpers
    'format_address',
]
