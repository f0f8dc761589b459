"""
Block Explorer ABI Service

Fetches verified contract ABIs from an Etherscan-compatible API.
"""

import logging
from typing import Optional

import requests

from ..config.monitor_config import ETHERSCAN_BASE_URL, REQUEST_TIMEOUT
from .errors import ProtocolError, TransportError

logger = logging.getLogger(__name__)


class ExplorerClient:
    """
    Client for the explorer's contract endpoints.
    """

    def __init__(self, api_key: str, base_url: str = ETHERSCAN_BASE_URL,
                 timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        """Initialize with explorer API key."""
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_contract_abi(self, address: str) -> str:
        """
        Get the raw ABI JSON of a verified contract.

        Args:
            address: Contract address

        Returns:
            ABI as JSON text (feed to AbiRegistry.build)

        Raises:
            TransportError: explorer unreachable or HTTP failure
            ProtocolError: explorer answered with status != "1"
        """
        params = {
            'module': 'contract',
            'action': 'getabi',
            'address': address,
            'apikey': self.api_key,
        }

        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            raise TransportError(f"Explorer request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(f"Get contract raw abi failed: {e}") from e
        except ValueError as e:
            raise TransportError("Explorer returned malformed JSON") from e

        if not isinstance(data, dict):
            raise TransportError("Explorer returned an unexpected payload")

        if data.get('status') != '1':
            detail = data.get('result') or data.get('message') or 'Unknown error'
            raise ProtocolError(f"Get contract raw abi failed: {detail}")

        logger.info(f"Fetched ABI for {address[:10]}... from explorer")
        return data.get('result', '')
