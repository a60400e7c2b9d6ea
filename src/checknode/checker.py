"""
Health check of a single node.

A check walks a fixed sequence of steps:

    ACQUIRE_TUNNEL --> QUERY_SYNC_STATUS --> QUERY_PEER_COUNT --> QUERY_BLOCK_HEIGHT
                                                                        |
                DONE <-- CLASSIFY <-- FETCH_REFERENCE <-----------------+

Every step can fail, which moves the check to FAILED. A failed check logs
the chain and the cause, and yields no result. It is never retried and never
affects other checks.

QUERY_PEER_COUNT is skipped for chains without peer-count semantics; their
result carries no peer count.

The tunnel is closed exactly once on the way out, on every path.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto

import httpx

from checknode import metrics
from checknode.classifier import classify
from checknode.config import CheckSettings
from checknode.errors import NodeCheckError
from checknode.models import NodeResult, NodeTarget
from checknode.reference import ReferenceFetcher
from checknode.rpc import ETH_BLOCK_NUMBER, ETH_SYNCING, NET_PEER_COUNT, RpcClient
from checknode.tunnel import TunnelManager

logger = logging.getLogger(__name__)


class CheckStep(Enum):
    """Steps of a node check, in execution order."""

    PENDING = auto()
    """Not started."""

    ACQUIRE_TUNNEL = auto()
    """Opening the port-forward."""

    QUERY_SYNC_STATUS = auto()
    """Calling `eth_syncing`."""

    QUERY_PEER_COUNT = auto()
    """Calling `net_peerCount`. Skipped for chains without peers."""

    QUERY_BLOCK_HEIGHT = auto()
    """Calling `eth_blockNumber`."""

    FETCH_REFERENCE = auto()
    """Querying the reference endpoint."""

    CLASSIFY = auto()
    """Deriving the sync verdict."""

    DONE = auto()
    """Finished with a result."""

    FAILED = auto()
    """Aborted. No result."""

    @property
    def is_terminal(self) -> bool:
        """Check if the check has finished."""
        return self in {CheckStep.DONE, CheckStep.FAILED}


@dataclass(slots=True)
class NodeChecker:
    """Runs the health check of one node."""

    target: NodeTarget
    """Node to check."""

    local_port: int
    """Local port reserved for this check's tunnel."""

    tunnels: TunnelManager
    """Opens and closes the tunnel."""

    settings: CheckSettings = field(default_factory=CheckSettings)
    """Timeouts of the HTTP calls."""

    transport: httpx.AsyncBaseTransport | None = None
    """HTTP transport override. None uses the default network transport."""

    step: CheckStep = field(default=CheckStep.PENDING, init=False)
    """Current step."""

    failed_step: CheckStep | None = field(default=None, init=False)
    """Step at which the check failed, if it did."""

    @property
    def chain(self) -> str:
        """Chain identifier of the target."""
        return self.target.chain

    async def run(self) -> NodeResult | None:
        """
        Check the node.

        Returns:
            The result, or None if any step failed. Failures are logged.
        """
        started = time.monotonic()
        try:
            result = await self._check()
        except NodeCheckError as e:
            self._fail()
            failed_at = self.failed_step or self.step
            logger.error("Check of %s failed at %s: %s", self.chain, failed_at.name, e)
            metrics.checks_total.labels(chain=self.chain, outcome="failed").inc()
            return None
        finally:
            metrics.check_duration.labels(chain=self.chain).observe(time.monotonic() - started)

        self.step = CheckStep.DONE
        metrics.checks_total.labels(chain=self.chain, outcome="ok").inc()
        return result

    async def _check(self) -> NodeResult:
        self.step = CheckStep.ACQUIRE_TUNNEL
        async with (
            self.tunnels.forward(self.target, self.local_port) as tunnel,
            # Tunnel endpoints are local: environment proxies must not apply to them.
            httpx.AsyncClient(transport=self.transport, trust_env=False) as local_http,
            httpx.AsyncClient(transport=self.transport) as public_http,
        ):
            rpc = RpcClient(local_http, timeout=self.settings.rpc_timeout)
            reference = ReferenceFetcher(public_http, timeout=self.settings.reference_timeout)

            self.step = CheckStep.QUERY_SYNC_STATUS
            tunnel.ensure_alive()
            status = await rpc.call(tunnel, ETH_SYNCING)

            peers: int | None = None
            if self.target.has_peer_count:
                self.step = CheckStep.QUERY_PEER_COUNT
                tunnel.ensure_alive()
                peers = await rpc.call_int(tunnel, NET_PEER_COUNT)

            self.step = CheckStep.QUERY_BLOCK_HEIGHT
            tunnel.ensure_alive()
            node_block = await rpc.call_int(tunnel, ETH_BLOCK_NUMBER)

            self.step = CheckStep.FETCH_REFERENCE
            latest_block = await reference.fetch_latest_block(
                self.chain, self.target.reference_url
            )

        self.step = CheckStep.CLASSIFY
        classification = classify(status, latest_block)
        if classification.error is not None:
            logger.warning(
                "Failed to determine sync status of %s: %s",
                self.chain,
                classification.error,
            )

        return NodeResult(
            chain=self.chain,
            sync_status=classification.verdict,
            node_block_num=node_block,
            latest_block_num=latest_block,
            diff=latest_block - node_block,
            peers_count=peers,
        )

    def _fail(self) -> None:
        if not self.step.is_terminal:
            self.failed_step = self.step
        self.step = CheckStep.FAILED
