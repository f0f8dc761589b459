"""
JSON-RPC 2.0 client for EVM nodes.

Requests are framed and posted by web3's HTTPProvider; this wrapper adds
bounded retries and maps failures onto the monitor's error taxonomy. An
`error` member in the response is surfaced as ProtocolError rather than
swallowed.
"""

import logging
import time
from typing import Any, List, Optional

import requests
from web3 import Web3
from web3.providers import BaseProvider

from ..config.monitor_config import MAX_RETRIES, REQUEST_TIMEOUT, RETRY_DELAY
from .errors import ProtocolError, TransportError

logger = logging.getLogger(__name__)


class RpcClient:
    """
    JSON-RPC client over a web3 HTTPProvider.

    Safe to share between worker threads: the provider draws request ids from
    one counter and posts through a single requests.Session.
    """

    def __init__(self, url: str, timeout: float = REQUEST_TIMEOUT, max_retries: int = MAX_RETRIES,
                 retry_delay: float = RETRY_DELAY, session: Optional[requests.Session] = None,
                 provider: Optional[BaseProvider] = None):
        self.url = url
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        # Retried by call(), not by the provider
        self.provider = provider or Web3.HTTPProvider(
            url,
            request_kwargs={'timeout': timeout},
            session=self.session,
            exception_retry_configuration=None,
        )

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Send one JSON-RPC request and return its `result`.

        Raises:
            TransportError: connection failure, timeout, HTTP error or non-JSON body
            ProtocolError: response carries an `error` member or no result
        """
        params = params if params is not None else []

        attempt = 0
        while True:
            try:
                body = self._request(method, params)
                break
            except TransportError as e:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.debug(f"{method} failed ({e}), retry {attempt}/{self.max_retries}")
                time.sleep(self.retry_delay * attempt)

        if not isinstance(body, dict):
            raise TransportError(f"{method}: response is not a JSON object")

        error = body.get('error')
        if error:
            if isinstance(error, dict):
                raise ProtocolError(str(error.get('message', 'unknown error')), code=error.get('code'))
            raise ProtocolError(str(error))

        if 'result' not in body:
            raise ProtocolError(f"{method}: response has neither result nor error")
        return body['result']

    def _request(self, method: str, params: List[Any]) -> Any:
        try:
            return self.provider.make_request(method, params)
        except requests.Timeout as e:
            raise TransportError(f"{method}: request timed out after {self.timeout}s") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "error"
            raise TransportError(f"{method}: HTTP {status} from node") from e
        except requests.RequestException as e:
            raise TransportError(f"{method}: node unreachable: {e}") from e
        except ValueError as e:
            raise TransportError(f"{method}: malformed JSON response") from e

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
