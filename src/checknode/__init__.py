"""
Point-in-time health and sync checks for blockchain full nodes.

Nodes run behind Kubernetes services. Each check opens a port-forward to a
node, queries its sync status, peer count and block height over JSON-RPC,
compares the height with an independent reference endpoint, and classifies
the node as synced, syncing or unknown. All nodes are checked concurrently.
"""

from .checker import CheckStep, NodeChecker
from .classifier import SYNCING_TOLERANCE, Classification, classify
from .config import CheckSettings
from .errors import (
    CheckNodeError,
    ClassificationError,
    ConfigError,
    HexDecodeError,
    NodeCheckError,
    ReferenceFetchError,
    RpcError,
    TunnelError,
    UnknownChainError,
)
from .models import NodeResult, NodeTarget, SyncVerdict
from .orchestrator import Orchestrator, allocate_local_ports
from .reference import ReferenceFetcher
from .registry import NodeRegistry
from .rpc import RpcClient
from .tunnel import Tunnel, TunnelManager

__all__ = [
    "SYNCING_TOLERANCE",
    "CheckNodeError",
    "CheckSettings",
    "CheckStep",
    "Classification",
    "ClassificationError",
    "ConfigError",
    "HexDecodeError",
    "NodeCheckError",
    "NodeChecker",
    "NodeRegistry",
    "NodeResult",
    "NodeTarget",
    "Orchestrator",
    "ReferenceFetchError",
    "ReferenceFetcher",
    "RpcClient",
    "RpcError",
    "SyncVerdict",
    "Tunnel",
    "TunnelError",
    "TunnelManager",
    "UnknownChainError",
    "allocate_local_ports",
    "classify",
]
