"""
Contract Monitor - per-block decoding and aggregation pipeline.

For one block:
1. List the block's transaction hashes
2. Fetch each transaction in a bounded worker pool; keep those sent to the
   target contract and fetch their receipts
3. Decode call data and receipt logs against the ABI registry
4. Fold decode results into method/event counters (collecting thread only,
   block order)
5. Run value-threshold and blacklist checks
6. Assemble the report

Per-hash failures are collected and reported; they never abort the batch.
Every run starts from freshly seeded counters.
"""

import logging
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..config.monitor_config import MonitorConfig
from .aggregator import ActivityCounters
from .blockchain_service import BlockchainService, BlockIdentifier, is_target
from .decoders.abis import load_abi_file, load_blacklist_file
from .decoders.base import PolicyFlag, ReceiptRecord, TransactionRecord
from .decoders.call_decoder import decode_call, decode_logs
from .decoders.registry import AbiRegistry
from .errors import (
    BlockNotFound,
    MalformedABI,
    MalformedBlacklist,
    MonitorRunError,
    ProtocolError,
    RunCancelled,
    SenderRecoveryError,
    TransactionNotFound,
    TransportError,
    UnknownSelector,
)
from .explorer_client import ExplorerClient
from .policy_checks import Blacklist, SenderRecovery, check_blacklist, check_value
from .reporter import FetchFailure, MonitoringReport, TransactionSummary, build_report

logger = logging.getLogger(__name__)

# Errors that only fail the hash they occurred on
PER_HASH_ERRORS = (TransactionNotFound, TransportError, ProtocolError, SenderRecoveryError)


@dataclass
class TransactionOutcome:
    """Fetch + decode result for one hash"""
    tx: TransactionRecord
    matched: bool
    receipt: Optional[ReceiptRecord] = None
    method_name: Optional[str] = None
    call_miss: Optional[str] = None
    event_names: List[str] = field(default_factory=list)
    event_misses: List[str] = field(default_factory=list)
    sender: Optional[str] = None
    recovery_failure: Optional[FetchFailure] = None

    def summary(self) -> TransactionSummary:
        return TransactionSummary(
            tx_hash=self.tx.hash,
            method=self.method_name,
            status=self.receipt.status if self.receipt else None,
            value=self.tx.value,
            sender=self.sender,
            events=list(self.event_names),
        )


class ContractMonitor:
    """
    Runs the decoding pipeline for one contract.

    The registry and blacklist are read-only and may be shared; the monitor
    keeps no state between runs, so several monitors may poll concurrently.
    """

    def __init__(self, service: BlockchainService, registry: AbiRegistry, config: MonitorConfig,
                 blacklist: Optional[Blacklist] = None, sender_recovery: Optional[SenderRecovery] = None):
        self.service = service
        self.registry = registry
        self.config = config
        self.contract_address = config.require_contract()
        self.blacklist = blacklist or Blacklist()
        if self.blacklist and sender_recovery is None:
            sender_recovery = SenderRecovery(config.chain_id)
        self.sender_recovery = sender_recovery

    # ------------------------------------------------------------------ worker

    def _process(self, tx_hash: str, cancel_event: Optional[threading.Event]) -> Optional[TransactionOutcome]:
        """Fetch, filter and decode one transaction. Touches no shared state."""
        if cancel_event is not None and cancel_event.is_set():
            return None

        tx = self.service.get_transaction(tx_hash)
        if not is_target(tx, self.contract_address):
            return TransactionOutcome(tx=tx, matched=False)

        outcome = TransactionOutcome(tx=tx, matched=True)
        try:
            outcome.method_name = decode_call(tx.data, self.registry)
        except UnknownSelector as e:
            logger.debug(f"Call miss for {tx_hash[:12]}...: {e}")
            outcome.call_miss = e.selector

        outcome.receipt = self.service.get_receipt(tx_hash)
        decoded = decode_logs(outcome.receipt, self.registry)
        outcome.event_names = decoded.names
        outcome.event_misses = decoded.misses

        if self.blacklist and self.sender_recovery is not None:
            # Still counted when the sender cannot be recovered; only screening is skipped
            try:
                raw = self.service.get_raw_transaction(tx_hash)
                outcome.sender = self.sender_recovery.recover(raw, tx_hash)
            except PER_HASH_ERRORS as e:
                logger.error(f"Sender recovery failed for {tx_hash}: {e}")
                outcome.recovery_failure = FetchFailure(tx_hash, type(e).__name__, str(e))

        return outcome

    # -------------------------------------------------------------------- run

    def run(self, block: BlockIdentifier, cancel_event: Optional[threading.Event] = None) -> MonitoringReport:
        """
        Monitor the target contract in one block.

        Args:
            block: Block number, hex quantity or tag
            cancel_event: Set it to abort the in-flight batch

        Returns:
            MonitoringReport (partial when some hashes failed)

        Raises:
            MonitorRunError: block listing failed (phase 'fetch')
            RunCancelled: cancel_event was set or the run was interrupted; carries
                the partial report
        """
        counters = ActivityCounters.seeded(self.registry.declared_names)

        try:
            hashes = self.service.list_transaction_hashes(block)
        except (BlockNotFound, TransportError, ProtocolError) as e:
            raise MonitorRunError('fetch', e) from e

        logger.info(f"Block {block}: scanning {len(hashes)} transactions for {self.contract_address[:10]}...")

        outcomes: Dict[int, TransactionOutcome] = {}
        failures: Dict[int, FetchFailure] = {}
        cancelled = False
        stop = cancel_event if cancel_event is not None else threading.Event()

        pool = ThreadPoolExecutor(max_workers=min(self.config.max_workers, max(1, len(hashes))))
        try:
            futures = {pool.submit(self._process, h, stop): i for i, h in enumerate(hashes)}
            for fut in as_completed(futures):
                if stop.is_set():
                    cancelled = True
                    break
                idx = futures[fut]
                try:
                    outcome = fut.result()
                except CancelledError:
                    continue
                except PER_HASH_ERRORS as e:
                    logger.error(f"Failed to process {hashes[idx]}: {e}")
                    failures[idx] = FetchFailure(hashes[idx], type(e).__name__, str(e))
                    continue
                if outcome is None:
                    continue
                outcomes[idx] = outcome
                if outcome.recovery_failure is not None:
                    failures[idx] = outcome.recovery_failure
        except KeyboardInterrupt:
            logger.warning(f"Block {block}: interrupted, cancelling queued transactions")
            stop.set()
            cancelled = True
        finally:
            pool.shutdown(wait=True, cancel_futures=cancelled)

        summaries, flags = self._fold(counters, outcomes)

        report = build_report(
            contract_address=self.contract_address,
            block=block,
            transactions_scanned=len(hashes),
            counters=counters,
            transactions=summaries,
            flags=flags,
            fetch_failures=[failures[i] for i in sorted(failures)],
            cancelled=cancelled,
        )

        if cancelled:
            logger.warning(f"Block {block}: run cancelled after {len(outcomes)} of {len(hashes)} transactions")
            raise RunCancelled(report)

        logger.info(f"Block {block}: {len(summaries)} matching transactions, {len(flags)} alerts, "
                    f"{len(failures)} failed hashes")
        return report

    def _fold(self, counters: ActivityCounters, outcomes: Dict[int, TransactionOutcome]):
        """Merge outcomes in block order and run policy checks"""
        summaries: List[TransactionSummary] = []
        flags: List[PolicyFlag] = []
        blacklist_done = False

        for idx in sorted(outcomes):
            outcome = outcomes[idx]
            if not outcome.matched:
                continue

            counters.fold(
                outcome.method_name,
                outcome.event_names,
                call_missed=outcome.call_miss is not None,
                event_miss_count=len(outcome.event_misses),
            )
            summaries.append(outcome.summary())

            value_flag = check_value(outcome.tx, self.config.value_limit_wei)
            if value_flag:
                logger.warning(f"Transaction value {outcome.tx.value} is greater than the value limit: {outcome.tx.hash}")
                flags.append(value_flag)

            if self.blacklist and not blacklist_done:
                blacklist_flag = check_blacklist(outcome.tx, outcome.sender, self.blacklist)
                if blacklist_flag:
                    logger.warning(f"ALERT: transaction from blacklisted address {outcome.sender}: {outcome.tx.hash}")
                    flags.append(blacklist_flag)
                    if self.config.blacklist_stop_on_first_hit:
                        blacklist_done = True

        return summaries, flags

    def run_range(self, start: int, end: int,
                  cancel_event: Optional[threading.Event] = None) -> Iterator[MonitoringReport]:
        """Run blocks start..end (inclusive) one at a time"""
        if end < start:
            raise ValueError("end must be >= start")
        for number in range(start, end + 1):
            if cancel_event is not None and cancel_event.is_set():
                return
            yield self.run(number, cancel_event=cancel_event)


# ============================================================================
# SETUP HELPERS
# ============================================================================

def build_registry(config: MonitorConfig, explorer: Optional[ExplorerClient] = None) -> AbiRegistry:
    """
    Build the ABI registry from the explorer (when given) or the ABI file.

    Raises:
        MonitorRunError: phase 'registry'
    """
    try:
        if explorer is not None:
            abi_text = explorer.get_contract_abi(config.require_contract())
        else:
            abi_text = load_abi_file(config.abi_path)
        return AbiRegistry.build(abi_text)
    except (MalformedABI, TransportError, ProtocolError) as e:
        raise MonitorRunError('registry', e) from e


def load_blacklist(config: MonitorConfig) -> Blacklist:
    """
    Load the configured blacklist; no path means an empty blacklist.

    Raises:
        MonitorRunError: phase 'blacklist'
    """
    if not config.blacklist_path:
        return Blacklist()
    try:
        return Blacklist(load_blacklist_file(config.blacklist_path))
    except MalformedBlacklist as e:
        raise MonitorRunError('blacklist', e) from e


def monitor_contract(config: MonitorConfig, block: BlockIdentifier,
                     service: Optional[BlockchainService] = None,
                     explorer: Optional[ExplorerClient] = None,
                     cancel_event: Optional[threading.Event] = None,
                     include_chain_metrics: bool = False) -> MonitoringReport:
    """
    One complete monitoring run: registry, blacklist and counters are rebuilt
    from scratch on every call.
    """
    registry = build_registry(config, explorer)
    blacklist = load_blacklist(config)
    owns_service = service is None
    service = service or BlockchainService.from_config(config)
    try:
        monitor = ContractMonitor(service, registry, config, blacklist=blacklist)
        report = monitor.run(block, cancel_event=cancel_event)
        if include_chain_metrics:
            try:
                report.chain_metrics = service.get_chain_metrics()
            except (TransportError, ProtocolError, BlockNotFound) as e:
                raise MonitorRunError('fetch', e, partial_report=report) from e
        return report
    finally:
        if owns_service:
            service.close()
