"""
Policy checks for contract transactions.

- Value threshold: flag transactions moving more than a configured amount (wei)
- Sender blacklist: flag transactions whose recovered sender is blacklisted

Sender recovery works from the signed raw transaction, so the result does not
depend on the node's own `from` claim. The chain id the signature must commit
to is configuration, not a constant.
"""

import logging
from typing import Dict, Iterable, Optional, Union

import rlp
from rlp.exceptions import DecodingError
from eth_account import Account
from hexbytes import HexBytes

from .decoders.base import (
    BlacklistEntry,
    FlagReason,
    PolicyFlag,
    TransactionRecord,
)
from .errors import SenderRecoveryError

logger = logging.getLogger(__name__)

# EIP-2718 typed transactions start with a type byte below 0x7f; legacy RLP lists start at 0xc0
MAX_TYPED_TX_PREFIX = 0x7f
EIP155_V_OFFSET = 35


class Blacklist:
    """Read-only address set keyed by lower-cased address"""

    def __init__(self, entries: Iterable[BlacklistEntry] = ()):
        self._entries: Dict[str, BlacklistEntry] = {}
        for entry in entries:
            self._entries.setdefault(entry.address.lower(), entry)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def get(self, address: str) -> Optional[BlacklistEntry]:
        return self._entries.get(address.lower()) if address else None


# ============================================================================
# SENDER RECOVERY
# ============================================================================

def signed_chain_id(raw_tx: bytes) -> Optional[int]:
    """
    Chain id a signed transaction commits to.

    Returns None for pre-EIP-155 legacy transactions, which carry no chain id.
    """
    if not raw_tx:
        raise SenderRecoveryError("Empty raw transaction")
    try:
        if raw_tx[0] <= MAX_TYPED_TX_PREFIX:
            fields = rlp.decode(raw_tx[1:])
            return int.from_bytes(fields[0], 'big')
        fields = rlp.decode(raw_tx)
        v = int.from_bytes(fields[6], 'big')
    except (DecodingError, IndexError, TypeError) as e:
        raise SenderRecoveryError(f"Raw transaction is not valid RLP: {e}") from e

    if v >= EIP155_V_OFFSET:
        return (v - EIP155_V_OFFSET) // 2
    return None


class SenderRecovery:
    """Recovers transaction senders from their signatures for one chain"""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id

    def recover(self, raw_tx: Union[bytes, str], tx_hash: str = "") -> str:
        """
        Recover the checksummed sender address.

        Args:
            raw_tx: Signed transaction payload (bytes or 0x-hex)
            tx_hash: Used in error messages only

        Raises:
            SenderRecoveryError: payload malformed, signed for another chain,
                or signature invalid
        """
        raw = bytes(HexBytes(raw_tx))
        tx_chain_id = signed_chain_id(raw)
        if tx_chain_id is not None and tx_chain_id != self.chain_id:
            raise SenderRecoveryError(
                f"Transaction {tx_hash or '<unknown>'} signed for chain {tx_chain_id}, expected {self.chain_id}"
            )
        if tx_chain_id is None:
            logger.debug(f"Transaction {tx_hash[:12]}... has no replay protection")

        try:
            return Account.recover_transaction(raw)
        except Exception as e:
            raise SenderRecoveryError(f"Could not recover sender of {tx_hash or '<unknown>'}: {e}") from e


# ============================================================================
# CHECKS
# ============================================================================

def check_value(tx: TransactionRecord, limit: int) -> Optional[PolicyFlag]:
    """Flag when tx.value is strictly greater than limit (integer comparison)"""
    if tx.value > limit:
        return PolicyFlag(
            transaction_hash=tx.hash,
            reason=FlagReason.VALUE_EXCEEDED,
            detail=f"Transaction value {tx.value} wei exceeds limit {limit} wei",
        )
    return None


def check_blacklist(tx: TransactionRecord, sender: Optional[str], blacklist: Blacklist) -> Optional[PolicyFlag]:
    """Flag when the recovered sender is blacklisted (case-insensitive)"""
    if not sender or sender not in blacklist:
        return None
    entry = blacklist.get(sender)
    detail = f"Sender {sender} is blacklisted"
    if entry is not None and entry.comment:
        detail += f" ({entry.comment}"
        detail += f", listed {entry.date})" if entry.date else ")"
    return PolicyFlag(
        transaction_hash=tx.hash,
        reason=FlagReason.BLACKLISTED_SENDER,
        detail=detail,
    )
