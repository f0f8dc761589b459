"""
Monitor Configuration Module

Holds every setting the monitor needs. A MonitorConfig is built once at startup
(usually from the process environment) and passed into each component; nothing
below the entry point reads the environment directly.
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from ..services.errors import ConfigurationError

# Explorer API Configuration
ETHERSCAN_BASE_URL = "https://api.etherscan.io/api"

# Default resource locations
DEFAULT_ABI_PATH = "resources/abi.json"
DEFAULT_BLACKLIST_PATH = "resources/blacklistAddresses.json"

# Threshold used by the value check (wei)
DEFAULT_VALUE_LIMIT_WEI = 10_000_000_000

# Query Configuration
MAX_RETRIES = 3
RETRY_DELAY = 0.5  # seconds
REQUEST_TIMEOUT = 30  # seconds
MAX_WORKERS = 8

# Blocks are usually mined every 12-13 seconds
POLL_INTERVAL = 15  # seconds

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class MonitorConfig:
    """Run configuration shared read-only by every component."""
    node_url: str
    contract_address: Optional[str] = None
    explorer_api_key: str = ""
    explorer_base_url: str = ETHERSCAN_BASE_URL
    chain_id: int = 1
    value_limit_wei: int = DEFAULT_VALUE_LIMIT_WEI
    abi_path: str = DEFAULT_ABI_PATH
    blacklist_path: Optional[str] = DEFAULT_BLACKLIST_PATH
    request_timeout: float = REQUEST_TIMEOUT
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    max_workers: int = MAX_WORKERS
    poll_interval: float = POLL_INTERVAL
    include_txpool: bool = True
    blacklist_stop_on_first_hit: bool = False

    def __post_init__(self):
        if not self.node_url:
            raise ConfigurationError("NODE_URL is required")
        if self.value_limit_wei < 0:
            raise ConfigurationError("VALUE_LIMIT_WEI must be non-negative")
        if self.max_workers < 1:
            raise ConfigurationError("MAX_WORKERS must be at least 1")
        if self.request_timeout <= 0:
            raise ConfigurationError("REQUEST_TIMEOUT must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "MonitorConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Values that take precedence over the environment

        Raises:
            ConfigurationError: if a required value is missing or unparsable
        """
        env = os.environ if environ is None else environ

        def get(name: str, default=None):
            value = env.get(name)
            return default if value in (None, "") else value

        try:
            values = {
                'node_url': get('NODE_URL', ""),
                'contract_address': get('CONTRACT_ADDRESS'),
                'explorer_api_key': get('ETHERSCAN_API_KEY', ""),
                'explorer_base_url': get('ETHERSCAN_BASE_URL', ETHERSCAN_BASE_URL),
                'chain_id': int(get('CHAIN_ID', 1)),
                'value_limit_wei': int(get('VALUE_LIMIT_WEI', DEFAULT_VALUE_LIMIT_WEI)),
                'abi_path': get('ABI_PATH', DEFAULT_ABI_PATH),
                'blacklist_path': get('BLACKLIST_PATH', DEFAULT_BLACKLIST_PATH),
                'request_timeout': float(get('REQUEST_TIMEOUT', REQUEST_TIMEOUT)),
                'max_retries': int(get('MAX_RETRIES', MAX_RETRIES)),
                'retry_delay': float(get('RETRY_DELAY', RETRY_DELAY)),
                'max_workers': int(get('MAX_WORKERS', MAX_WORKERS)),
                'poll_interval': float(get('POLL_INTERVAL', POLL_INTERVAL)),
                'include_txpool': _parse_bool(get('INCLUDE_TXPOOL', 'true')),
                'blacklist_stop_on_first_hit': _parse_bool(get('BLACKLIST_STOP_ON_FIRST_HIT', 'false')),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **changes) -> "MonitorConfig":
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def require_contract(self) -> str:
        if not self.contract_address:
            raise ConfigurationError("CONTRACT_ADDRESS is required for contract monitoring")
        return self.contract_address

    def redacted(self) -> dict:
        """Settings safe to log (API key masked)."""
        key = self.explorer_api_key
        return {
            'node_url': self.node_url[:50],
            'contract_address': self.contract_address,
            'explorer_api_key': f"{key[:4]}..." if key else "",
            'chain_id': self.chain_id,
            'value_limit_wei': str(self.value_limit_wei),
            'max_workers': self.max_workers,
            'request_timeout': self.request_timeout,
        }
