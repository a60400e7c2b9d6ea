"""
Sync status classification.

Turns a node's `eth_syncing` result and the reference block height into a
verdict. This is the only business rule of a health check and it is a pure
function: no I/O, no logging.

The Tolerance Band
------------------
While syncing, a node reports the height it started syncing from in
`startingBlock`. Some clients keep reporting that marker for a while after
they caught up. A node is therefore only considered syncing when the
reference head is more than `SYNCING_TOLERANCE` blocks past its starting
block. Inside the band the node is treated as synced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from checknode.errors import ClassificationError, HexDecodeError
from checknode.models import SyncVerdict
from checknode.rpc.values import RpcBool, RpcSyncObject, RpcValue

SYNCING_TOLERANCE: Final = 20
"""Blocks between reference head and starting block still considered synced."""


@dataclass(frozen=True, slots=True)
class Classification:
    """Verdict together with the decode error that forced it, if any."""

    verdict: SyncVerdict
    """The sync verdict."""

    error: ClassificationError | None = None
    """Set when the starting block could not be decoded."""


def classify(status: RpcValue, reference_block: int) -> Classification:
    """
    Classify a node's sync status against the reference height.

    Args:
        status: Decoded `eth_syncing` result.
        reference_block: Latest block height from the reference endpoint.

    Returns:
        - synced for a `false` result
        - syncing if `reference_block - startingBlock > SYNCING_TOLERANCE`
        - synced if the starting block is within the tolerance band
        - unknown with an error if the starting block cannot be decoded
        - unknown without error for every other shape
    """
    match status:
        case RpcBool(value=False):
            return Classification(SyncVerdict.SYNCED)

        case RpcSyncObject() if status.has_starting_block:
            try:
                starting_block = status.starting_block()
            except HexDecodeError as e:
                return Classification(
                    SyncVerdict.UNKNOWN,
                    ClassificationError(f"Cannot decode startingBlock: {e.message}"),
                )

            if reference_block - starting_block > SYNCING_TOLERANCE:
                return Classification(SyncVerdict.SYNCING)
            return Classification(SyncVerdict.SYNCED)

        case _:
            return Classification(SyncVerdict.UNKNOWN)
