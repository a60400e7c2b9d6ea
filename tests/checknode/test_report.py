"""Tests for result rendering."""

from __future__ import annotations

import json

from checknode.models import NodeResult, SyncVerdict
from checknode.report import format_json, format_report, format_result

ETH = NodeResult(
    chain="eth",
    sync_status=SyncVerdict.SYNCED,
    node_block_num=100,
    latest_block_num=100,
    diff=0,
    peers_count=5,
)

ARB = NodeResult(
    chain="arb",
    sync_status=SyncVerdict.SYNCING,
    node_block_num=80,
    latest_block_num=102,
    diff=22,
)


class TestFormatResult:
    """Tests for the per-node block."""

    def test_with_peers(self) -> None:
        """Peer count is the last line when present."""
        assert format_result(ETH) == (
            "Node: eth\n"
            "Sync status: synced\n"
            "Node block number: 100\n"
            "Scanner block number: 100\n"
            "Diff with mainnet: 0\n"
            "Peers count: 5"
        )

    def test_without_peers(self) -> None:
        """Chains without peer semantics omit the line."""
        assert "Peers count" not in format_result(ARB)
        assert format_result(ARB).endswith("Diff with mainnet: 22")


class TestFormatReport:
    """Tests for the full report."""

    def test_sorted_blocks(self) -> None:
        """Blocks appear in chain order, each followed by a blank line."""
        report = format_report({"eth": ETH, "arb": ARB})

        assert report == f"{format_result(ARB)}\n\n{format_result(ETH)}\n\n"

    def test_empty(self) -> None:
        """No results, no output."""
        assert format_report({}) == ""


class TestFormatJson:
    """Tests for the machine-readable report."""

    def test_camel_case_fields(self) -> None:
        """Results are keyed by chain with camelCase fields."""
        payload = json.loads(format_json({"eth": ETH, "arb": ARB}))

        assert list(payload) == ["arb", "eth"]
        assert payload["eth"] == {
            "chain": "eth",
            "syncStatus": "synced",
            "nodeBlockNum": 100,
            "latestBlockNum": 100,
            "diff": 0,
            "peersCount": 5,
        }
        assert payload["arb"]["peersCount"] is None
