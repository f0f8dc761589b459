"""
Call data and receipt log decoding against an ABI registry.

Misses raise (or are collected as) UnknownSelector; callers count them and move
on to the next transaction.
"""

import logging
from typing import Union

from web3 import Web3

from ..errors import UnknownSelector
from .base import DecodedLogs, ReceiptRecord, hex_to_bytes
from .registry import SELECTOR_LENGTH, AbiRegistry

logger = logging.getLogger(__name__)


def decode_call(data: Union[bytes, str], registry: AbiRegistry) -> str:
    """
    Resolve the method name invoked by transaction call data.

    Args:
        data: Raw call data (bytes or 0x-hex)
        registry: ABI registry for the target contract

    Returns:
        Declared method name

    Raises:
        UnknownSelector: data shorter than a selector, or selector not in the ABI
    """
    raw = hex_to_bytes(data)
    if len(raw) < SELECTOR_LENGTH:
        raise UnknownSelector(Web3.to_hex(raw) if raw else "", reason="call data shorter than a selector")
    return registry.resolve_function(raw[:SELECTOR_LENGTH])


def decode_logs(receipt: ReceiptRecord, registry: AbiRegistry) -> DecodedLogs:
    """
    Resolve event names for every log in a receipt.

    Anonymous events (no topics) and topics outside the ABI are recorded as
    misses and skipped.
    """
    decoded = DecodedLogs()
    for i, log in enumerate(receipt.logs):
        if not log.topics:
            logger.debug(f"Log[{i}] of {receipt.transaction_hash[:12]}... has no topics (anonymous event)")
            decoded.misses.append("")
            continue
        try:
            decoded.names.append(registry.resolve_event(log.topics[0]))
        except UnknownSelector as e:
            logger.debug(f"Log[{i}] of {receipt.transaction_hash[:12]}...: {e}")
            decoded.misses.append(e.selector)
    return decoded
