"""
JSON-RPC access to nodes.

Provides:
- RpcClient: single JSON-RPC calls through a tunnel
- RpcValue: typed variants of decoded results
- parse_hex / to_hex: the hex quantity codec
"""

from .client import (
    ETH_BLOCK_NUMBER,
    ETH_SYNCING,
    NET_PEER_COUNT,
    RpcClient,
    build_request,
)
from .encoding import parse_hex, to_hex
from .values import (
    RpcBool,
    RpcHex,
    RpcSyncObject,
    RpcUnknown,
    RpcValue,
    decode_result,
)

__all__ = [
    "ETH_BLOCK_NUMBER",
    "ETH_SYNCING",
    "NET_PEER_COUNT",
    "RpcBool",
    "RpcClient",
    "RpcHex",
    "RpcSyncObject",
    "RpcUnknown",
    "RpcValue",
    "build_request",
    "decode_result",
    "parse_hex",
    "to_hex",
]
