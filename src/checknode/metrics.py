"""
Metric registry using prometheus_client.

Records the outcome of a check run. A run is a one-shot diagnostic, so the
registry is written out once (textfile collector format) instead of served.
"""

from __future__ import annotations

from pathlib import Path

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    write_to_textfile,
)

from checknode.models import NodeResult, SyncVerdict

# Create a dedicated registry for checknode metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Check Outcomes
# -----------------------------------------------------------------------------

checks_total = Counter(
    "checknode_checks_total",
    "Node checks by outcome",
    ["chain", "outcome"],
    registry=REGISTRY,
)

check_duration = Histogram(
    "checknode_check_duration_seconds",
    "Time to check one node, tunnel setup and teardown included",
    ["chain"],
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Node State
# -----------------------------------------------------------------------------

node_block_height = Gauge(
    "checknode_node_block_height",
    "Block height reported by the node",
    ["chain"],
    registry=REGISTRY,
)

reference_block_height = Gauge(
    "checknode_reference_block_height",
    "Block height reported by the reference endpoint",
    ["chain"],
    registry=REGISTRY,
)

block_height_diff = Gauge(
    "checknode_block_height_diff",
    "Reference height minus node height",
    ["chain"],
    registry=REGISTRY,
)

peers_count = Gauge(
    "checknode_peers_count",
    "Connected peers reported by the node",
    ["chain"],
    registry=REGISTRY,
)

node_synced = Gauge(
    "checknode_node_synced",
    "1 if the node is synced, 0 if syncing, -1 if unknown",
    ["chain"],
    registry=REGISTRY,
)

_VERDICT_VALUES = {
    SyncVerdict.SYNCED: 1,
    SyncVerdict.SYNCING: 0,
    SyncVerdict.UNKNOWN: -1,
}


def record_result(result: NodeResult) -> None:
    """Publish the state of a successfully checked node."""
    node_block_height.labels(chain=result.chain).set(result.node_block_num)
    reference_block_height.labels(chain=result.chain).set(result.latest_block_num)
    block_height_diff.labels(chain=result.chain).set(result.diff)
    node_synced.labels(chain=result.chain).set(_VERDICT_VALUES[result.sync_status])
    if result.peers_count is not None:
        peers_count.labels(chain=result.chain).set(result.peers_count)


def generate_metrics() -> bytes:
    """Generate metrics in Prometheus text format."""
    return generate_latest(REGISTRY)


def write_metrics(path: Path | str) -> None:
    """Write metrics atomically for the node-exporter textfile collector."""
    write_to_textfile(str(path), REGISTRY)
