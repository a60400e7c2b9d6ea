"""
Hex quantity codec for Ethereum JSON-RPC values.

JSON-RPC encodes integers as "quantities": a 0x prefix followed by the
big-endian base-16 digits, e.g. 100 is "0x64".
"""

from __future__ import annotations

import re
from typing import Final

from checknode.errors import HexDecodeError

MAX_QUANTITY: Final = 2**63 - 1
"""Largest decodable quantity. Block heights and peer counts fit in int64."""

_HEX_QUANTITY = re.compile(r"0[xX]([0-9a-fA-F]+)")


def parse_hex(value: object) -> int:
    """
    Decode a 0x-prefixed hex quantity.

    A missing prefix, an empty digit string, a sign, non-hex characters or a
    non-string value are all errors. Nothing is ever decoded as zero by default.

    Raises:
        HexDecodeError: If the value is not a valid quantity.
    """
    if not isinstance(value, str):
        raise HexDecodeError(value, f"expected string, got {type(value).__name__}")

    match = _HEX_QUANTITY.fullmatch(value)
    if match is None:
        raise HexDecodeError(value, "expected 0x-prefixed hex digits")

    number = int(match.group(1), 16)
    if number > MAX_QUANTITY:
        raise HexDecodeError(value, f"exceeds {MAX_QUANTITY}")
    return number


def to_hex(number: int) -> str:
    """Encode a non-negative integer as a 0x-prefixed hex quantity."""
    if number < 0:
        raise ValueError(f"Quantity must be non-negative, got {number}")
    return f"0x{number:x}"
