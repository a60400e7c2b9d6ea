"""
Typed variants for JSON-RPC result values.

A JSON-RPC `result` member is untyped: its shape depends on the method.
The Ethereum methods used by health checks return one of three shapes:

- `eth_syncing`: `false`, or an object with progress fields
- `net_peerCount`, `eth_blockNumber`: a hex quantity string

Results are decoded once, at the RPC boundary, into one variant of `RpcValue`.
Consumers pattern-match on the variant instead of inspecting raw JSON types.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .encoding import parse_hex

STARTING_BLOCK_FIELD = "startingBlock"
"""Field of an `eth_syncing` progress object holding the sync start height."""


@dataclass(frozen=True, slots=True)
class RpcBool:
    """A boolean result, e.g. `false` from `eth_syncing` on a synced node."""

    value: bool


@dataclass(frozen=True, slots=True)
class RpcHex:
    """A string result, expected to be a hex quantity."""

    text: str

    def to_int(self) -> int:
        """
        Decode the quantity.

        Raises:
            HexDecodeError: If the text is not a valid quantity.
        """
        return parse_hex(self.text)


@dataclass(frozen=True, slots=True)
class RpcSyncObject:
    """An object result, e.g. the progress report of a syncing node."""

    fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_starting_block(self) -> bool:
        """Check if the object exposes a starting block."""
        return STARTING_BLOCK_FIELD in self.fields

    def starting_block(self) -> int:
        """
        Decode the starting block height.

        Raises:
            KeyError: If the field is absent.
            HexDecodeError: If the field is not a valid quantity.
        """
        return parse_hex(self.fields[STARTING_BLOCK_FIELD])


@dataclass(frozen=True, slots=True)
class RpcUnknown:
    """Any other result shape (null, numbers, arrays)."""

    raw: Any


RpcValue = RpcBool | RpcHex | RpcSyncObject | RpcUnknown
"""Decoded JSON-RPC result."""


def decode_result(raw: Any) -> RpcValue:
    """Map a raw JSON `result` member onto its typed variant."""
    # bool is checked first: it is never a valid quantity or object.
    if isinstance(raw, bool):
        return RpcBool(raw)
    if isinstance(raw, str):
        return RpcHex(raw)
    if isinstance(raw, dict):
        return RpcSyncObject(dict(raw))
    return RpcUnknown(raw)
