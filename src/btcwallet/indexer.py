"""
Block-explorer (Esplora-compatible) REST indexer client.

Endpoints used:
- ``GET  {base}/address/{address}/utxo``
- ``POST {base}/tx`` (raw transaction hex as text/plain, returns the txid)
"""

from __future__ import annotations

import re
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx
from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from btcwallet.constants import MAX_OUTPUT_VALUE
from btcwallet.errors import DecodeError, HttpStatusError, IndexerError, NetworkError
from btcwallet.models import UTXO

if TYPE_CHECKING:
    from btcwallet.config import NodeConfig

# Transient failures (network errors and 5xx) are retried this many times
MAX_RETRIES = 2
# Delay before each retry, in seconds
RETRY_BACKOFF = (0.25, 1.0)

_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class _UTXOStatus(BaseModel):
    confirmed: bool = False
    block_height: int | None = None


class _IndexerUTXO(BaseModel):
    txid: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$")
    vout: int = Field(..., ge=0, le=0xFFFFFFFF)
    value: int = Field(..., ge=0, le=MAX_OUTPUT_VALUE)
    status: _UTXOStatus = Field(default_factory=_UTXOStatus)


_UTXO_LIST = TypeAdapter(list[_IndexerUTXO])


class IndexerClient:
    """
    Synchronous client for an Esplora-style indexer (blockstream.info, mempool.space).

    Requests carry ``X-API-Key`` and ``Authorization: Bearer`` headers when a key
    or token is configured.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        api_token: str = "",
        timeout: float | None = None,
        max_retries: int = MAX_RETRIES,
        backoff: Sequence[float] = RETRY_BACKOFF,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            base_url: Indexer API root, e.g. https://blockstream.info/testnet/api
            api_key: Sent as X-API-Key when non-empty
            api_token: Sent as a bearer token when non-empty
            timeout: Per-request timeout in seconds (None = no timeout)
            max_retries: Retries for network errors and 5xx responses
            backoff: Delay before each retry; the last value repeats
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = tuple(backoff) or (0.0,)

        headers: dict[str, str] = {}
        if api_key:
            headers["X-API-Key"] = api_key
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"

        self.client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

    @classmethod
    def from_config(cls, node: NodeConfig, **kwargs) -> IndexerClient:
        return cls(
            base_url=node.data_api_url,
            api_key=node.data_api_key,
            api_token=node.data_api_token,
            timeout=node.timeout,
            **kwargs,
        )

    def _request(
        self,
        method: str,
        path: str,
        content: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform a request, retrying transient failures.

        Raises:
            NetworkError: connect/read/timeout failure after all retries
            HttpStatusError: non-2xx response (4xx immediately, 5xx after retries)
        """
        url = f"{self.base_url}/{path}"
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            logger.debug(f"{method} {url} (attempt {attempt + 1}/{attempts})")
            cause: Exception | None = None
            try:
                response = self.client.request(method, url, content=content, headers=headers)
            except httpx.TransportError as e:
                cause = e
                error: IndexerError = NetworkError(f"{method} {url}: {type(e).__name__}: {e}")
            else:
                if response.is_success:
                    return response
                error = HttpStatusError(response.status_code, response.text)

            if not error.retryable or attempt == attempts - 1:
                logger.debug(f"Indexer request failed: {error}")
                raise error from cause

            delay = self.backoff[min(attempt, len(self.backoff) - 1)]
            logger.warning(f"{error}; retrying in {delay:.2f}s ({attempt + 1}/{self.max_retries})")
            time.sleep(delay)

        raise AssertionError("unreachable")

    def list_unspent(self, address: str) -> list[UTXO]:
        """
        List confirmed and unconfirmed unspent outputs of ``address``.

        Order is whatever the indexer returned.
        """
        try:
            response = self._request("GET", f"address/{address}/utxo")
            try:
                entries = _UTXO_LIST.validate_python(response.json())
            except ValueError as e:
                # ValidationError and JSONDecodeError are both ValueErrors
                kind = "invalid UTXO listing" if isinstance(e, ValidationError) else "invalid JSON"
                raise DecodeError(f"{kind}: {e}") from e
        except IndexerError as e:
            e.add_context(f"list_unspent(address={address})")
            raise

        utxos = [
            UTXO(
                txid=entry.txid.lower(),
                vout=entry.vout,
                value=entry.value,
                confirmed=entry.status.confirmed,
                block_height=entry.status.block_height,
            )
            for entry in entries
        ]
        logger.debug(f"Indexer returned {len(utxos)} UTXO(s) for {address}")
        return utxos

    def submit(self, raw_tx_hex: str) -> str:
        """Broadcast a raw transaction, returning the txid reported by the indexer."""
        try:
            response = self._request(
                "POST", "tx", content=raw_tx_hex, headers={"Content-Type": "text/plain"}
            )
            txid = response.text.strip()
            if not _TXID_RE.match(txid):
                raise DecodeError(f"unexpected broadcast response: {txid[:200]!r}")
        except IndexerError as e:
            e.add_context("submit")
            raise

        logger.info(f"Broadcast transaction: {txid}")
        return txid.lower()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> IndexerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
