"""
Global configuration for checknode.

Environment-specific settings and the tunables of a check run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DEFAULT_CONFIG_PATH: Final = Path.home() / "bin" / "nodes_conf.yaml"
"""Registry location used when neither --config nor CHECKNODE_CONFIG is given."""

CHECKNODE_CONFIG = Path(os.environ.get("CHECKNODE_CONFIG", str(DEFAULT_CONFIG_PATH))).expanduser()
"""Path of the node registry YAML file."""

CHECKNODE_KUBECTL = os.environ.get("CHECKNODE_KUBECTL", "kubectl").strip()
"""kubectl binary used to open port-forwards."""

if not CHECKNODE_KUBECTL:
    raise ValueError("Invalid CHECKNODE_KUBECTL environment variable: must not be empty")

DEFAULT_NAMESPACE: Final = "blockchains"
"""Kubernetes namespace used for nodes that do not declare one."""

CHAINS_WITHOUT_PEER_COUNT: Final = frozenset({"arb"})
"""Chains whose nodes expose no meaningful `net_peerCount`."""


@dataclass(frozen=True, slots=True)
class CheckSettings:
    """Tunables for a check run."""

    base_local_port: int = 8080
    """First local port handed out to tunnels. Run k nodes, use [base, base + k)."""

    ready_timeout: float = 10.0
    """Upper bound in seconds on waiting for a tunnel to accept connections."""

    probe_interval: float = 0.1
    """Delay in seconds between tunnel readiness probes."""

    terminate_timeout: float = 5.0
    """Grace period in seconds between SIGTERM and SIGKILL on tunnel close."""

    rpc_timeout: float = 10.0
    """Timeout in seconds for a single JSON-RPC call."""

    reference_timeout: float = 10.0
    """Timeout in seconds for the reference endpoint request."""

    def __post_init__(self) -> None:
        if not 0 < self.base_local_port < 65536:
            raise ValueError(f"base_local_port out of range: {self.base_local_port}")
        timeouts = (
            "ready_timeout",
            "probe_interval",
            "terminate_timeout",
            "rpc_timeout",
            "reference_timeout",
        )
        for name in timeouts:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
