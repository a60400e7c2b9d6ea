"""
Concurrent health checks across nodes.

The orchestrator fans out one checker per node and waits for all of them.
Each checker owns its tunnel, its local port and its HTTP connections, so
the only shared product is the final result mapping. Checkers return their
result instead of writing into it; the orchestrator merges after the join.

Local Ports
-----------
Every tunnel binds its own local port. Ports are handed out from the range
`[base, base + k)` for `k` nodes, so no two concurrent tunnels collide.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import InitVar, dataclass, field

import httpx

from checknode import metrics
from checknode.checker import NodeChecker
from checknode.config import CheckSettings
from checknode.models import NodeResult, NodeTarget
from checknode.tunnel import TunnelManager

logger = logging.getLogger(__name__)

MAX_PORT = 65535
"""Highest valid TCP port."""


def allocate_local_ports(count: int, base: int) -> list[int]:
    """
    Reserve one distinct local port per node.

    Raises:
        ValueError: If the range does not fit in the TCP port space.
    """
    if count < 0:
        raise ValueError(f"Port count must be non-negative, got {count}")
    if base + count - 1 > MAX_PORT:
        raise ValueError(f"Cannot allocate {count} ports from {base}: exceeds {MAX_PORT}")
    return list(range(base, base + count))


@dataclass(slots=True)
class Orchestrator:
    """Checks many nodes concurrently."""

    settings: CheckSettings = field(default_factory=CheckSettings)
    """Port range and timeouts."""

    tunnels: InitVar[TunnelManager | None] = None
    """Tunnel manager to share between checkers. Defaults to one built from settings."""

    transport: httpx.AsyncBaseTransport | None = None
    """HTTP transport override passed to every checker."""

    tunnel_manager: TunnelManager = field(init=False)
    """Tunnel manager every checker opens its tunnel through."""

    def __post_init__(self, tunnels: TunnelManager | None) -> None:
        if tunnels is None:
            tunnels = TunnelManager(settings=self.settings)
        self.tunnel_manager = tunnels

    def make_checker(self, target: NodeTarget, local_port: int) -> NodeChecker:
        """Create the checker for one node."""
        return NodeChecker(
            target=target,
            local_port=local_port,
            tunnels=self.tunnel_manager,
            settings=self.settings,
            transport=self.transport,
        )

    async def run_all(self, targets: Sequence[NodeTarget]) -> dict[str, NodeResult]:
        """
        Check every target concurrently and wait for all of them.

        Args:
            targets: Nodes to check. Chain identifiers must be unique.

        Returns:
            Results of the nodes whose check succeeded, keyed by chain.
            Failed nodes are absent; their failure was logged.

        Raises:
            ValueError: If two targets share a chain identifier.
        """
        chains = [target.chain for target in targets]
        duplicates = sorted({chain for chain in chains if chains.count(chain) > 1})
        if duplicates:
            raise ValueError(f"Duplicate chain identifiers: {', '.join(duplicates)}")

        ports = allocate_local_ports(len(targets), self.settings.base_local_port)
        checkers = [self.make_checker(t, port) for t, port in zip(targets, ports, strict=True)]

        logger.info("Checking %d node(s): %s", len(checkers), ", ".join(chains))

        # Wait for every checker, whatever the outcome.
        #
        # Checkers report typed failures as None. Anything raised here is a bug
        # in one checker and must not take the others down with it.
        outcomes = await asyncio.gather(
            *(checker.run() for checker in checkers),
            return_exceptions=True,
        )

        results: dict[str, NodeResult] = {}
        for checker, outcome in zip(checkers, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Check of %s crashed: %r", checker.chain, outcome, exc_info=outcome
                )
                metrics.checks_total.labels(chain=checker.chain, outcome="crashed").inc()
                continue
            if outcome is None:
                continue
            results[checker.chain] = outcome
            metrics.record_result(outcome)

        logger.info("%d of %d node(s) checked successfully", len(results), len(checkers))
        return results
