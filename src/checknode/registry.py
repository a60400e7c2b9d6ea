"""Node registry loader.

Loads the set of checkable nodes from a YAML file. The expected format:

    nodes:
      eth:
        service: geth-mainnet
        port: 8545
        rpc_path: /
        namespace: blockchains
      arb:
        service: nitro
        port: 8547
        rpc_path: /rpc
    public_apis:
      eth: https://api.etherscan.io/api
      arb: https://api.arbiscan.io/api

`public_apis` holds the reference endpoint of each chain. Every node must
have one: a node without a reference height cannot be classified. URLs are
checked when the file is loaded.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, HttpUrl, ValidationError, model_validator

from checknode.config import CHAINS_WITHOUT_PEER_COUNT, DEFAULT_NAMESPACE
from checknode.errors import ConfigError, UnknownChainError
from checknode.models import NodeTarget

logger = logging.getLogger(__name__)


class NodeEntry(BaseModel):
    """Single node entry from the registry file."""

    service: str = Field(min_length=1)
    """Kubernetes service name."""

    port: int = Field(gt=0, lt=65536)
    """Remote port of the JSON-RPC endpoint."""

    rpc_path: str = "/"
    """HTTP path of the JSON-RPC endpoint."""

    namespace: str = DEFAULT_NAMESPACE
    """Kubernetes namespace of the service."""

    peer_count: bool | None = None
    """
    Whether to query `net_peerCount`.

    Unset means: query it unless the chain is known to lack it.
    """


class NodeRegistry(BaseModel):
    """All configured nodes and their reference endpoints."""

    nodes: dict[str, NodeEntry]
    """Mapping from chain identifier to node entry."""

    public_apis: dict[str, HttpUrl] = Field(default_factory=dict)
    """Mapping from chain identifier to reference endpoint base URL. Must be http(s)."""

    @model_validator(mode="after")
    def validate_reference_endpoints(self) -> NodeRegistry:
        """Every node needs a reference endpoint."""
        missing = sorted(chain for chain in self.nodes if not self.public_apis.get(chain))
        if missing:
            raise ValueError(f"No public_apis entry for: {', '.join(missing)}")
        return self

    def chains(self) -> list[str]:
        """Configured chain identifiers, sorted."""
        return sorted(self.nodes)

    def target(self, chain: str) -> NodeTarget:
        """
        Build the check target for one chain.

        Raises:
            UnknownChainError: If the chain is not configured.
        """
        entry = self.nodes.get(chain)
        if entry is None:
            raise UnknownChainError(chain, self.chains())

        has_peer_count = entry.peer_count
        if has_peer_count is None:
            has_peer_count = chain not in CHAINS_WITHOUT_PEER_COUNT

        return NodeTarget(
            chain=chain,
            service=entry.service,
            port=entry.port,
            rpc_path=_normalize_path(entry.rpc_path),
            namespace=entry.namespace,
            reference_url=str(self.public_apis[chain]),
            has_peer_count=has_peer_count,
        )

    def targets(self, chain: str | None = None) -> list[NodeTarget]:
        """
        Select check targets.

        Args:
            chain: A single chain identifier, or None for every node.

        Raises:
            UnknownChainError: If the chain is not configured.
        """
        if chain is not None:
            return [self.target(chain)]
        return [self.target(name) for name in self.chains()]

    @classmethod
    def from_data(cls, data: Any) -> NodeRegistry:
        """
        Validate already-parsed registry data.

        Raises:
            ConfigError: If the data does not describe a valid registry.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Registry must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid registry: {e}") from e

    @classmethod
    def from_yaml(cls, content: str) -> NodeRegistry:
        """
        Load the registry from a YAML string.

        Raises:
            ConfigError: If the content is not valid YAML or not a valid registry.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Registry is not valid YAML: {e}") from e
        return cls.from_data(data)

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> NodeRegistry:
        """
        Load the registry from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or is not a valid registry.
        """
        path = Path(path)
        logger.debug("Loading node registry from %s", path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read registry {path}: {e}") from e
        return cls.from_yaml(content)


def _normalize_path(path: str) -> str:
    """Ensure the RPC path starts with a slash."""
    return path if path.startswith("/") else f"/{path}"
