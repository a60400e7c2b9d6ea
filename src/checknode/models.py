"""Data model shared by the checker, the orchestrator and the reporter."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    For example, the field `node_block_num` is represented as `nodeBlockNum`
    in the JSON report.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }


class SyncVerdict(str, Enum):
    """Outcome of sync classification."""

    SYNCED = "synced"
    """The node follows the chain head."""

    SYNCING = "syncing"
    """The node is actively catching up."""

    UNKNOWN = "unknown"
    """The node's sync status has an unrecognized shape or could not be decoded."""


class NodeTarget(StrictBaseModel):
    """
    One checkable node.

    Built from the registry and immutable for the duration of a run.
    """

    chain: str
    """Chain identifier. Unique key of the node within a run."""

    service: str
    """Kubernetes service fronting the node."""

    port: int
    """Remote service port serving JSON-RPC."""

    rpc_path: str = "/"
    """HTTP path of the JSON-RPC endpoint."""

    namespace: str
    """Kubernetes namespace of the service."""

    reference_url: str
    """Base URL of the independent reference endpoint (Etherscan-style API)."""

    has_peer_count: bool = True
    """Whether the node supports `net_peerCount`."""


class NodeResult(StrictBaseModel):
    """
    Outcome of one successful node check.

    Only created when every query of the check succeeded.
    """

    chain: str
    """Chain identifier."""

    sync_status: SyncVerdict
    """Classifier verdict."""

    node_block_num: int
    """Block height reported by the node."""

    latest_block_num: int
    """Block height reported by the reference endpoint."""

    diff: int
    """Reference height minus node height. Negative when the node is ahead."""

    peers_count: int | None = None
    """Connected peers, or None for chains without peer-count semantics."""
