"""
Report rendering for monitoring runs.

Presentation only: the report is assembled from finished counters, outcomes
and flags; no decisions are made here.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from .aggregator import ActivityCounters
from .blockchain_service import ChainMetrics
from .decoders.base import PolicyFlag, ReceiptStatus, format_address

logger = logging.getLogger(__name__)

WEI_PER_ETH = 10 ** 18


@dataclass
class TransactionSummary:
    """One target-contract transaction as reported"""
    tx_hash: str
    method: Optional[str]
    status: Optional[ReceiptStatus]
    value: int
    sender: Optional[str] = None
    events: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'tx_hash': self.tx_hash,
            'method': self.method,
            'status': self.status.value if self.status else None,
            'value_wei': str(self.value),
            'sender': self.sender,
            'events': list(self.events),
        }


@dataclass
class FetchFailure:
    """Hash whose fetch/recovery failed without aborting the run"""
    tx_hash: str
    error_type: str
    message: str

    def to_dict(self) -> dict:
        return {'tx_hash': self.tx_hash, 'error_type': self.error_type, 'message': self.message}


@dataclass
class MonitoringReport:
    """Result of one contract monitoring run over one block"""
    contract_address: str
    block: str
    transactions_scanned: int
    counters: ActivityCounters
    transactions: List[TransactionSummary] = field(default_factory=list)
    flags: List[PolicyFlag] = field(default_factory=list)
    fetch_failures: List[FetchFailure] = field(default_factory=list)
    chain_metrics: Optional[ChainMetrics] = None
    cancelled: bool = False

    @property
    def successful_count(self) -> int:
        return sum(1 for t in self.transactions if t.status == ReceiptStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return sum(1 for t in self.transactions if t.status == ReceiptStatus.FAILURE)

    @property
    def total_value(self) -> int:
        return sum(t.value for t in self.transactions)

    @property
    def is_partial(self) -> bool:
        return self.cancelled or bool(self.fetch_failures)

    def to_dict(self) -> dict:
        """JSON-safe dictionary (wei amounts as decimal strings)"""
        return {
            'contract_address': self.contract_address,
            'block': self.block,
            'transactions_scanned': self.transactions_scanned,
            'matched_transactions': len(self.transactions),
            'successful_count': self.successful_count,
            'failed_count': self.failed_count,
            'total_value_wei': str(self.total_value),
            'counters': self.counters.to_dict(),
            'transactions': [t.to_dict() for t in self.transactions],
            'flags': [f.to_dict() for f in self.flags],
            'fetch_failures': [f.to_dict() for f in self.fetch_failures],
            'chain_metrics': self.chain_metrics.to_dict() if self.chain_metrics else None,
            'partial': self.is_partial,
            'cancelled': self.cancelled,
        }


def build_report(contract_address: str, block, transactions_scanned: int, counters: ActivityCounters,
                 transactions: List[TransactionSummary], flags: List[PolicyFlag],
                 fetch_failures: List[FetchFailure], chain_metrics: Optional[ChainMetrics] = None,
                 cancelled: bool = False) -> MonitoringReport:
    return MonitoringReport(
        contract_address=contract_address,
        block=str(block),
        transactions_scanned=transactions_scanned,
        counters=counters,
        transactions=list(transactions),
        flags=list(flags),
        fetch_failures=list(fetch_failures),
        chain_metrics=chain_metrics,
        cancelled=cancelled,
    )


def _format_eth(wei: int) -> str:
    whole, frac = divmod(wei, WEI_PER_ETH)
    return f"{whole}.{frac:018d}".rstrip('0').rstrip('.') + " ETH"


def render_chain_metrics(metrics: ChainMetrics) -> str:
    lines = [
        "=== Chain ===",
        f"  Block height     : {metrics.block_number}",
        f"  Timestamp        : {metrics.timestamp}",
        f"  Block interval   : {metrics.block_interval if metrics.block_interval is not None else 'n/a'} s",
        f"  Gas used / limit : {metrics.gas_used} / {metrics.gas_limit} ({metrics.gas_utilization:.1%})",
        f"  Block size       : {metrics.size} bytes",
        f"  Gas price        : {metrics.gas_price} wei",
    ]
    if metrics.pending is not None:
        lines.append(f"  Mempool          : {metrics.pending} pending, {metrics.queued} queued")
    return "\n".join(lines)


def render_text(report: MonitoringReport) -> str:
    """Human-readable summary"""
    lines = [
        f"=== Contract {report.contract_address} @ block {report.block} ===",
        f"  Transactions scanned : {report.transactions_scanned}",
        f"  Matched              : {len(report.transactions)} "
        f"({report.successful_count} successful, {report.failed_count} failed)",
        f"  Value transferred    : {_format_eth(report.total_value)}",
        "",
        "--- Methods ---",
    ]
    for name, count in report.counters.methods.items():
        lines.append(f"  {name:32s} {count:6d}")
    if report.counters.call_misses:
        lines.append(f"  {'<unknown selector>':32s} {report.counters.call_misses:6d}")

    lines += ["", "--- Events ---"]
    for name, count in report.counters.events.items():
        lines.append(f"  {name:32s} {count:6d}")
    if report.counters.event_misses:
        lines.append(f"  {'<unknown topic>':32s} {report.counters.event_misses:6d}")

    if report.transactions:
        lines += ["", "--- Transactions ---"]
        for tx in report.transactions:
            status = tx.status.value if tx.status else "unknown"
            lines.append(f"  {format_address(tx.tx_hash, 12)}  {tx.method or '<unknown>':24s} "
                         f"{status:8s} {tx.value} wei")

    lines += ["", "--- Alerts ---"]
    if report.flags:
        for flag in report.flags:
            lines.append(f"  [!] {flag.reason.value}: {flag.transaction_hash} - {flag.detail}")
    else:
        lines.append("  none")

    if report.fetch_failures:
        lines += ["", "--- Failed hashes ---"]
        for failure in report.fetch_failures:
            lines.append(f"  {failure.tx_hash}: {failure.error_type}: {failure.message}")

    if report.cancelled:
        lines += ["", "[STOP] Run cancelled; counters are partial"]

    if report.chain_metrics:
        lines += ["", render_chain_metrics(report.chain_metrics)]

    return "\n".join(lines)


def transactions_frame(report: MonitoringReport) -> pd.DataFrame:
    """Per-transaction table"""
    columns = ['tx_hash', 'method', 'status', 'value_wei', 'sender', 'events']
    rows = []
    for tx in report.transactions:
        row = tx.to_dict()
        row['events'] = len(tx.events)
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def counters_frame(report: MonitoringReport) -> pd.DataFrame:
    """Method and event counts in long format"""
    rows = [{'kind': 'method', 'name': n, 'count': c} for n, c in report.counters.methods.items()]
    rows += [{'kind': 'event', 'name': n, 'count': c} for n, c in report.counters.events.items()]
    return pd.DataFrame(rows, columns=['kind', 'name', 'count'])


def write_report(report: MonitoringReport, path: Union[str, Path]) -> Path:
    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, indent=2)
    logger.info(f"Wrote report to {path}")
    return path
