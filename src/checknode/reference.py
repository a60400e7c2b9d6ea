"""
Reference block height from an independent public endpoint.

A node's height is only meaningful next to the chain head seen by someone
else. The reference is an Etherscan-style explorer API, queried through its
JSON-RPC proxy module:

    GET <base>?module=proxy&action=eth_blockNumber
    -> {"jsonrpc": "2.0", "id": 83, "result": "0x12a05f2"}

Any query string already present in the base URL (e.g. an API key) is kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

import httpx

from checknode.errors import HexDecodeError, ReferenceFetchError
from checknode.rpc.encoding import parse_hex

logger = logging.getLogger(__name__)

LATEST_BLOCK_PARAMS: Final = {"module": "proxy", "action": "eth_blockNumber"}
"""Query selecting the latest block number from the proxy module."""


@dataclass(slots=True)
class ReferenceFetcher:
    """Queries reference endpoints for the canonical chain head."""

    http: httpx.AsyncClient
    """HTTP client used for every request."""

    timeout: float = 10.0
    """Timeout in seconds for each request."""

    async def fetch_latest_block(self, chain: str, reference_url: str) -> int:
        """
        Fetch the latest block height known to the reference endpoint.

        Args:
            chain: Chain identifier, for error reporting.
            reference_url: Base URL of the explorer API.

        Returns:
            The latest block height.

        Raises:
            ReferenceFetchError: If the request fails or the response has no
                decodable block number.
        """
        logger.debug("Fetching reference block for %s from %s", chain, reference_url)

        try:
            response = await self.http.get(
                reference_url, params=LATEST_BLOCK_PARAMS, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.InvalidURL as exc:
            raise ReferenceFetchError(
                chain, f"Invalid reference URL {reference_url!r}: {exc}"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ReferenceFetchError(
                chain,
                f"HTTP error {exc.response.status_code}: {exc.response.text[:200]}",
            ) from exc
        except httpx.HTTPError as exc:
            raise ReferenceFetchError(
                chain, f"Network error while connecting to {reference_url}: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ReferenceFetchError(
                chain, f"Response is not JSON: {response.text[:200]!r}"
            ) from exc

        block = body.get("result") if isinstance(body, dict) else None
        if block is None:
            raise ReferenceFetchError(chain, "No block number found in response")

        try:
            return parse_hex(block)
        except HexDecodeError as exc:
            # Explorers report errors (rate limits, bad keys) as a plain-text result.
            raise ReferenceFetchError(chain, f"Invalid block number: {exc.message}") from exc
