"""
Error taxonomy for chain monitoring.

Fatal errors (TransportError, ProtocolError, MalformedABI, BlockNotFound) abort
the current monitoring run. UnknownSelector is the expected outcome for calls
and logs outside the ABI and is only ever recorded as a miss.
"""

from typing import Any, Optional


class MonitorError(Exception):
    """Base class for all chain monitor errors"""


class ConfigurationError(MonitorError):
    """Required configuration is missing or invalid"""


class TransportError(MonitorError):
    """Node or explorer unreachable, timed out, or returned malformed HTTP"""


class ProtocolError(MonitorError):
    """The remote side answered with an error payload"""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        self.message = message
        if code is not None:
            super().__init__(f"RPC error {code}: {message}")
        else:
            super().__init__(message)


class MalformedABI(MonitorError):
    """ABI description could not be parsed into a registry"""


class MalformedBlacklist(MonitorError):
    """Blacklist file could not be parsed"""


class UnknownSelector(MonitorError):
    """Selector or topic hash absent from the ABI (non-fatal)"""

    def __init__(self, selector: str, reason: str = "not declared in ABI"):
        self.selector = selector
        self.reason = reason
        super().__init__(f"Unknown selector {selector or '<empty>'}: {reason}")


class BlockNotFound(MonitorError):
    def __init__(self, block: Any):
        self.block = block
        super().__init__(f"Block {block} not found")


class TransactionNotFound(MonitorError):
    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} not found")


class SenderRecoveryError(MonitorError):
    """Sender could not be recovered from the transaction signature"""


class MonitorRunError(MonitorError):
    """
    A monitoring run aborted.

    Carries the phase that failed (registry, blacklist, fetch) and,
    when counting had already started, the partial report.
    """

    def __init__(self, phase: str, cause: Exception, partial_report: Any = None):
        self.phase = phase
        self.cause = cause
        self.partial_report = partial_report
        partial = "partial counters available" if partial_report is not None else "no partial counters"
        super().__init__(f"Monitoring run failed during {phase}: {cause} ({partial})")

    @property
    def has_partial(self) -> bool:
        return self.partial_report is not None


class RunCancelled(MonitorError):
    """The in-flight batch was cancelled by the caller or interrupted"""

    def __init__(self, partial_report: Any = None):
        self.partial_report = partial_report
        super().__init__("Monitoring run cancelled")
