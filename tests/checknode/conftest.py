"""
Shared pytest fixtures for checknode tests.

Provides targets, fake tunnels and an in-memory node network.
"""

from __future__ import annotations

import pytest

from checknode.models import NodeTarget

from tests.checknode.helpers import FakeNodeNetwork, FakeTunnelManager, make_target


@pytest.fixture
def eth_target() -> NodeTarget:
    """Target for an Ethereum node with peer-count support."""
    return make_target("eth")


@pytest.fixture
def arb_target() -> NodeTarget:
    """Target for an Arbitrum node without peer-count support."""
    return make_target("arb", has_peer_count=False)


@pytest.fixture
def fake_tunnels() -> FakeTunnelManager:
    """Tunnel manager that records opens and closes without spawning processes."""
    return FakeTunnelManager()


@pytest.fixture
def healthy_network() -> FakeNodeNetwork:
    """Network where eth and arb are synced at height 100 and eth has 5 peers."""
    return FakeNodeNetwork(
        rpc={
            "eth": {"eth_syncing": False, "net_peerCount": "0x5", "eth_blockNumber": "0x64"},
            "arb": {"eth_syncing": False, "eth_blockNumber": "0x64"},
        },
        reference={
            "eth": {"status": "1", "result": "0x64"},
            "arb": {"status": "1", "result": "0x66"},
        },
    )
