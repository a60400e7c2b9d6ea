"""
JSON-RPC client for nodes reached through a tunnel.

Every call is a single JSON-RPC 2.0 request over HTTP POST:

    {"jsonrpc": "2.0", "method": "eth_blockNumber", "params": [], "id": 1}

The response envelope must carry a `result` member. Anything else is a
failure: the client never substitutes a default value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import httpx

from checknode.errors import HexDecodeError, RpcError

from .values import RpcHex, RpcValue, decode_result

if TYPE_CHECKING:
    from checknode.tunnel import Tunnel

logger = logging.getLogger(__name__)

JSONRPC_VERSION: Final = "2.0"
"""Protocol version sent in every request."""

REQUEST_ID: Final = 1
"""Fixed request id. One request is in flight per connection at a time."""

ETH_SYNCING: Final = "eth_syncing"
"""Sync progress: `false` or a progress object."""

NET_PEER_COUNT: Final = "net_peerCount"
"""Number of connected peers as a hex quantity."""

ETH_BLOCK_NUMBER: Final = "eth_blockNumber"
"""Latest local block height as a hex quantity."""


def build_request(method: str) -> dict[str, Any]:
    """Build the JSON-RPC envelope for a parameterless method."""
    return {"jsonrpc": JSONRPC_VERSION, "method": method, "params": [], "id": REQUEST_ID}


@dataclass(slots=True)
class RpcClient:
    """
    Issues JSON-RPC calls over an HTTP client.

    The HTTP client is owned by the caller so connections stay private to
    one node check.
    """

    http: httpx.AsyncClient
    """HTTP client used for every call."""

    timeout: float = 10.0
    """Timeout in seconds for each call."""

    async def call(self, tunnel: Tunnel, method: str) -> RpcValue:
        """
        Call a method on the node behind a tunnel.

        Args:
            tunnel: Open tunnel to the node.
            method: JSON-RPC method name. Sent with empty params.

        Returns:
            The decoded `result` member.

        Raises:
            RpcError: On transport failure, HTTP error status, a body that is
                not a JSON object, a JSON-RPC error, or a missing result.
        """
        chain = tunnel.chain
        url = tunnel.rpc_url
        logger.debug("Calling %s on %s via %s", method, chain, url)

        try:
            response = await self.http.post(
                url, json=build_request(method), timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RpcError(
                chain,
                method,
                f"HTTP error {exc.response.status_code}: {exc.response.text[:200]}",
            ) from exc
        except httpx.HTTPError as exc:
            raise RpcError(
                chain, method, f"Network error while connecting to {url}: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError(chain, method, f"Response is not JSON: {response.text[:200]!r}") from exc

        if not isinstance(body, dict):
            raise RpcError(chain, method, f"Response is not a JSON object: {body!r}")

        if body.get("error") is not None:
            raise RpcError(chain, method, f"Node returned error: {body['error']!r}")

        if "result" not in body:
            raise RpcError(chain, method, "Response has no result")

        return decode_result(body["result"])

    async def call_int(self, tunnel: Tunnel, method: str) -> int:
        """
        Call a method whose result is a hex quantity and decode it.

        Raises:
            RpcError: If the call fails or the result is not a valid quantity.
        """
        value = await self.call(tunnel, method)
        if not isinstance(value, RpcHex):
            raise RpcError(tunnel.chain, method, f"Expected hex quantity, got {value!r}")
        try:
            return value.to_int()
        except HexDecodeError as exc:
            raise RpcError(tunnel.chain, method, exc.message) from exc
