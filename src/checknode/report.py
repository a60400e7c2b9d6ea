"""Rendering of check results for humans and machines."""

from __future__ import annotations

import json
from collections.abc import Mapping

from checknode.models import NodeResult


def format_result(result: NodeResult) -> str:
    """Render one node's result as a block of lines."""
    lines = [
        f"Node: {result.chain}",
        f"Sync status: {result.sync_status.value}",
        f"Node block number: {result.node_block_num}",
        f"Scanner block number: {result.latest_block_num}",
        f"Diff with mainnet: {result.diff}",
    ]
    # Chains without peer semantics have no count to show.
    if result.peers_count is not None:
        lines.append(f"Peers count: {result.peers_count}")
    return "\n".join(lines)


def format_report(results: Mapping[str, NodeResult]) -> str:
    """Render all results, one block per node, sorted by chain."""
    return "".join(f"{format_result(results[chain])}\n\n" for chain in sorted(results))


def format_json(results: Mapping[str, NodeResult]) -> str:
    """Render all results as a JSON object keyed by chain, with camelCase fields."""
    payload = {
        chain: results[chain].model_dump(mode="json", by_alias=True) for chain in sorted(results)
    }
    return json.dumps(payload, indent=2)
