"""Exception hierarchy for the lineage engine.

Graph operations never let a :class:`LineageTransportError` escape to the
caller; it is caught, logged, and turned into a no-op.  The remaining
errors signal programming mistakes (unknown node ids, corrupted graphs) or
typed parse failures.
"""

from __future__ import annotations


class LineageError(Exception):
    """Base exception for all lineage engine errors."""


class LineageTransportError(LineageError):
    """A lineage collaborator call failed after all retry attempts.

    Attributes
    ----------
    path:
        The request path that failed (e.g. ``"/lineage"``).
    status_code:
        HTTP status returned by the service, or ``None`` for network-level
        failures and undecodable payloads.
    """

    def __init__(self, message: str, *, path: str = "", status_code: int | None = None) -> None:
        self.path = path
        self.status_code = status_code
        super().__init__(message)


class RetryableTransportError(LineageTransportError):
    """Transport failure that is worth retrying (network errors, 5xx)."""


class MalformedIdentifierError(LineageError):
    """A fully-qualified name does not have the ``system:project.….leaf`` shape."""

    def __init__(self, fqn: str, reason: str) -> None:
        self.fqn = fqn
        self.reason = reason
        super().__init__(f"Malformed fully-qualified name {fqn!r}: {reason}")


class NodeNotFoundError(LineageError):
    """The requested node id does not exist in the graph snapshot."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} not found in lineage graph")


class GraphInvariantError(LineageError):
    """A lineage graph violates one or more structural invariants.

    Attributes
    ----------
    violations:
        Human-readable description of every violated invariant.
    """

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__("Lineage graph invariants violated: " + "; ".join(violations))


class SessionNotOpenError(LineageError):
    """A session operation was called before :meth:`LineageSession.open`."""
