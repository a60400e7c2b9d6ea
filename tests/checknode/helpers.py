"""
Test doubles for the tunnel and HTTP layers.

Each fake provides the minimal behavior needed for isolated checker and
orchestrator tests, and records what it was asked to do.
"""

from __future__ import annotations

import json
import socket
from collections.abc import Callable, Mapping
from typing import Any
from unittest.mock import MagicMock

import httpx

from checknode.config import CheckSettings
from checknode.errors import TunnelError
from checknode.models import NodeTarget
from checknode.tunnel import Tunnel, TunnelManager

REFERENCE_HOST = "https://reference.example"
"""Reference endpoint host used by test targets."""


def make_target(chain: str = "eth", **overrides: Any) -> NodeTarget:
    """Build a node target with sensible defaults."""
    fields: dict[str, Any] = {
        "chain": chain,
        "service": f"{chain}-node",
        "port": 8545,
        "rpc_path": f"/{chain}/rpc",
        "namespace": "blockchains",
        "reference_url": f"{REFERENCE_HOST}/{chain}/api",
        "has_peer_count": True,
    }
    fields.update(overrides)
    return NodeTarget(**fields)


def free_port() -> int:
    """Ask the OS for a currently unused local TCP port."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class FakeTunnelManager(TunnelManager):
    """
    Tunnel manager that never spawns a process.

    Tunnels are backed by a mock process that reports itself as running.
    Optionally routes every tunnel to a fixed local port, e.g. a mock node
    server, while still recording the port the checker asked for.
    """

    def __init__(
        self,
        *,
        route_to_port: int | None = None,
        fail_open: set[str] | None = None,
    ) -> None:
        super().__init__(settings=CheckSettings())
        self.route_to_port = route_to_port
        self.fail_open = fail_open or set()
        self.requested_ports: dict[str, int] = {}
        self.close_calls: dict[str, int] = {}
        self.open_ports: set[int] = set()
        self.max_concurrent = 0
        self.tunnels: dict[str, Tunnel] = {}

    async def open(self, target: NodeTarget, local_port: int) -> Tunnel:
        if local_port in self.open_ports:
            raise AssertionError(f"Port {local_port} is already bound by another tunnel")
        self.requested_ports[target.chain] = local_port

        if target.chain in self.fail_open:
            raise TunnelError(target.chain, "Cannot start port forward: boom")

        self.open_ports.add(local_port)
        self.max_concurrent = max(self.max_concurrent, len(self.open_ports))

        process = MagicMock(returncode=None, pid=4242)
        port = self.route_to_port if self.route_to_port is not None else local_port
        tunnel = Tunnel(target=target, local_port=port, process=process)
        self.tunnels[target.chain] = tunnel
        return tunnel

    async def close(self, tunnel: Tunnel) -> None:
        self.close_calls[tunnel.chain] = self.close_calls.get(tunnel.chain, 0) + 1
        self.open_ports.discard(self.requested_ports[tunnel.chain])
        tunnel.closed = True


def rpc_response(result: Any, request_id: int = 1) -> dict[str, Any]:
    """Wrap a result in a JSON-RPC response envelope."""
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


class FakeNodeNetwork:
    """
    In-memory stand-in for nodes and reference endpoints.

    Requests are routed by the first path segment, which `make_target` sets
    to the chain identifier for both the RPC path and the reference URL.

    JSON-RPC POSTs are answered from `rpc[chain][method]`, reference GETs from
    `reference[chain]`. A reply may also be an `httpx.Response`, returned
    verbatim, or a callable taking the request, e.g. one raising
    `httpx.ConnectError`.
    """

    def __init__(
        self,
        rpc: Mapping[str, Mapping[str, Any]] | None = None,
        reference: Mapping[str, Any] | None = None,
    ) -> None:
        self.rpc = {chain: dict(methods) for chain, methods in (rpc or {}).items()}
        self.reference = dict(reference or {})
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        """Transport to plug into an httpx client."""
        return httpx.MockTransport(self.handle)

    def methods_called(self, chain: str) -> list[str]:
        """Methods called for a chain, in order. Reference fetches appear as "reference"."""
        return [method for called, method in self.calls if called == chain]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        chain = request.url.path.split("/")[1]

        if request.method == "POST":
            method = json.loads(request.content)["method"]
            self.calls.append((chain, method))
            methods = self.rpc.get(chain, {})
            if method not in methods:
                return httpx.Response(
                    200,
                    json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601}},
                )
            return self._respond(methods[method], request, rpc_response)

        self.calls.append((chain, "reference"))
        return self._respond(self.reference[chain], request, lambda body: body)

    @staticmethod
    def _respond(
        reply: Any,
        request: httpx.Request,
        wrap: Callable[[Any], Any],
    ) -> httpx.Response:
        if isinstance(reply, httpx.Response):
            return reply
        if callable(reply):
            return reply(request)
        return httpx.Response(200, json=wrap(reply))


def connect_error(request: httpx.Request) -> httpx.Response:
    """Reply that simulates a refused connection."""
    raise httpx.ConnectError("Connection refused", request=request)
