"""Exception hierarchy for node health checks."""

from __future__ import annotations


class CheckNodeError(Exception):
    """
    Base exception for all checknode errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigError(CheckNodeError):
    """
    Raised when the node registry cannot be loaded.

    Fatal: the run aborts before any check starts.
    """


class UnknownChainError(ConfigError):
    """
    Raised when a chain selector names no configured node.

    Attributes:
        chain: The requested chain identifier.
        known: The configured chain identifiers.
    """

    def __init__(self, chain: str, known: list[str]) -> None:
        self.chain = chain
        self.known = known
        super().__init__(f"Node {chain!r} not found in configuration (known: {', '.join(known)})")


class HexDecodeError(CheckNodeError, ValueError):
    """
    Raised when a value is not a valid 0x-prefixed hex quantity.

    Attributes:
        value: The offending value (truncated for display).
    """

    def __init__(self, value: object, detail: str) -> None:
        self.value = value
        value_repr = repr(value)
        if len(value_repr) > 50:
            value_repr = value_repr[:47] + "..."
        super().__init__(f"Invalid hex quantity {value_repr}: {detail}")


class NodeCheckError(CheckNodeError):
    """
    Base class for failures that abort a single node's check.

    These never propagate to sibling checks. The failed chain is simply
    absent from the result mapping.

    Attributes:
        chain: Chain identifier of the failing node.
    """

    def __init__(self, chain: str, message: str) -> None:
        self.chain = chain
        super().__init__(message)


class TunnelError(NodeCheckError):
    """Raised when the port-forward cannot be established or dies."""


class RpcError(NodeCheckError):
    """
    Raised when a JSON-RPC call fails.

    Attributes:
        method: The JSON-RPC method that failed.
    """

    def __init__(self, chain: str, method: str, detail: str) -> None:
        self.method = method
        super().__init__(chain, f"{method} failed: {detail}")


class ReferenceFetchError(NodeCheckError):
    """Raised when the reference block height cannot be fetched or decoded."""


class ClassificationError(CheckNodeError):
    """
    Raised when the sync status cannot be decoded during classification.

    Downgrades the verdict to unknown; the node's check still succeeds.
    """
