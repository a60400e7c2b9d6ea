"""
End-to-end checks against a mock node over real HTTP.

An aiohttp server plays both the node's JSON-RPC endpoint and the reference
explorer API. Tunnels are faked but route to the server's port, so every
request goes through the network stack exactly as in production.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web

from checknode.config import CheckSettings
from checknode.models import NodeTarget, SyncVerdict
from checknode.orchestrator import Orchestrator
from tests.checknode.helpers import FakeTunnelManager, free_port, make_target

PROXY_VARIABLES = (
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "ALL_PROXY",
    "http_proxy",
    "https_proxy",
    "all_proxy",
)


@dataclass
class MockNode:
    """State served by the mock node and explorer."""

    port: int
    """Port the server listens on."""

    rpc: dict[str, Any] = field(default_factory=dict)
    """JSON-RPC result per method."""

    reference: dict[str, Any] = field(default_factory=dict)
    """Body returned by the explorer API."""

    methods: list[str] = field(default_factory=list)
    """JSON-RPC methods received, in order."""

    def target(self, chain: str = "eth", **overrides: Any) -> NodeTarget:
        """Target whose RPC path and reference URL point at this server."""
        return make_target(
            chain,
            rpc_path="/rpc",
            reference_url=f"http://127.0.0.1:{self.port}/api",
            **overrides,
        )

    async def handle_rpc(self, request: web.Request) -> web.Response:
        body = await request.json()
        method = body["method"]
        self.methods.append(method)
        if method not in self.rpc:
            error = {"code": -32601, "message": "the method does not exist"}
            return web.json_response({"jsonrpc": "2.0", "id": body["id"], "error": error})
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": self.rpc[method]})

    async def handle_api(self, request: web.Request) -> web.Response:
        assert request.query["module"] == "proxy"
        assert request.query["action"] == "eth_blockNumber"
        return web.json_response(self.reference)


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep requests to the local server away from any configured proxy."""
    for name in PROXY_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest_asyncio.fixture
async def mock_node() -> AsyncIterator[MockNode]:
    """Start the mock node and explorer on a free local port."""
    node = MockNode(port=free_port())
    app = web.Application()
    app.router.add_post("/rpc", node.handle_rpc)
    app.router.add_get("/api", node.handle_api)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", node.port)
    await site.start()
    try:
        yield node
    finally:
        await runner.cleanup()


def make_orchestrator(node: MockNode) -> tuple[Orchestrator, FakeTunnelManager]:
    """Orchestrator whose tunnels all lead to the mock node."""
    tunnels = FakeTunnelManager(route_to_port=node.port)
    settings = CheckSettings(rpc_timeout=5.0, reference_timeout=5.0)
    return Orchestrator(settings=settings, tunnels=tunnels), tunnels


class TestEndToEnd:
    """Full checks over HTTP."""

    @pytest.mark.asyncio
    async def test_synced_node(self, mock_node: MockNode) -> None:
        """Synced at 100 with 5 peers."""
        mock_node.rpc = {"eth_syncing": False, "net_peerCount": "0x5", "eth_blockNumber": "0x64"}
        mock_node.reference = {"status": "1", "message": "OK", "result": "0x64"}
        orchestrator, tunnels = make_orchestrator(mock_node)

        results = await orchestrator.run_all([mock_node.target()])

        result = results["eth"]
        assert result.sync_status is SyncVerdict.SYNCED
        assert result.node_block_num == 100
        assert result.latest_block_num == 100
        assert result.diff == 0
        assert result.peers_count == 5
        assert mock_node.methods == ["eth_syncing", "net_peerCount", "eth_blockNumber"]
        assert tunnels.close_calls == {"eth": 1}

    @pytest.mark.asyncio
    async def test_syncing_node(self, mock_node: MockNode) -> None:
        """Started at 50, head at 100."""
        mock_node.rpc = {
            "eth_syncing": {
                "startingBlock": "0x32",
                "currentBlock": "0x5a",
                "highestBlock": "0x64",
            },
            "net_peerCount": "0x3",
            "eth_blockNumber": "0x5a",
        }
        mock_node.reference = {"result": "0x64"}
        orchestrator, _ = make_orchestrator(mock_node)

        results = await orchestrator.run_all([mock_node.target()])

        assert results["eth"].sync_status is SyncVerdict.SYNCING
        assert results["eth"].diff == 10

    @pytest.mark.asyncio
    async def test_reference_without_result(self, mock_node: MockNode) -> None:
        """No reference height means the chain is absent from the results."""
        mock_node.rpc = {"eth_syncing": False, "net_peerCount": "0x5", "eth_blockNumber": "0x64"}
        mock_node.reference = {"status": "0", "message": "NOTOK"}
        orchestrator, tunnels = make_orchestrator(mock_node)

        results = await orchestrator.run_all([mock_node.target()])

        assert results == {}
        assert tunnels.close_calls == {"eth": 1}

    @pytest.mark.asyncio
    async def test_mixed_chains(self, mock_node: MockNode) -> None:
        """Two nodes checked concurrently on distinct local ports."""
        mock_node.rpc = {"eth_syncing": False, "net_peerCount": "0x5", "eth_blockNumber": "0x64"}
        mock_node.reference = {"result": "0x65"}
        orchestrator, tunnels = make_orchestrator(mock_node)

        results = await orchestrator.run_all(
            [mock_node.target("eth"), mock_node.target("arb", has_peer_count=False)]
        )

        assert set(results) == {"eth", "arb"}
        assert results["arb"].peers_count is None
        assert results["arb"].diff == 1
        assert mock_node.methods.count("net_peerCount") == 1
        assert sorted(tunnels.requested_ports.values()) == [8080, 8081]
