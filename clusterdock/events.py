"""Algebraic Data Type (ADT) for clusterdock events.

Events cover every phase of onboarding and sync:
- Session: StageChanged, CredentialSupplied, SessionCancelled
- Connectivity: ConnectivityVerified, ConnectivityFailed, InventoryLookupFailed
- Discovery: NodesDiscovered, DiscoveryFailed, SyncStarted
- Verification: SelectionChanged, VerificationStarted, NodeVerified,
  VerificationDiscarded, BatchVerificationStarted, BatchVerificationCompleted
- Commit: NodesCommitted, CommitFailed

Use pattern matching to handle events in consumers:

    match event:
        case NodeVerified(node=name, passed=False, message=msg):
            print(f"{name} failed: {msg}")
        case NodesCommitted(cluster=cluster, nodes=nodes):
            print(f"{len(nodes)} nodes added to {cluster}")
"""

from __future__ import annotations

from dataclasses import dataclass

from clusterdock.api.model import Stage

# =============================================================================
# Session Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class StageChanged:
    """Onboarding session moved between stages."""

    session_id: str
    previous: Stage
    current: Stage


@dataclass(frozen=True, slots=True)
class CredentialSupplied:
    session_id: str


@dataclass(frozen=True, slots=True)
class SessionCancelled:
    """Session discarded by the operator. In-flight results will be dropped."""

    session_id: str
    stage: Stage


# =============================================================================
# Connectivity & Discovery Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class ConnectivityVerified:
    cluster: str
    version: str
    endpoint: str
    reported_nodes: int


@dataclass(frozen=True, slots=True)
class ConnectivityFailed:
    reason: str
    attempt: int


@dataclass(frozen=True, slots=True)
class InventoryLookupFailed:
    """The cluster was reachable but the inventory could not be queried."""

    cluster: str
    reason: str


@dataclass(frozen=True, slots=True)
class NodesDiscovered:
    cluster: str
    nodes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DiscoveryFailed:
    cluster: str
    reason: str


@dataclass(frozen=True, slots=True)
class SyncStarted:
    """Re-discovery of an already onboarded cluster began."""

    cluster: str
    known_nodes: int


# =============================================================================
# Verification Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class SelectionChanged:
    node: str
    selected: bool


@dataclass(frozen=True, slots=True)
class VerificationStarted:
    node: str


@dataclass(frozen=True, slots=True)
class NodeVerified:
    node: str
    passed: bool
    message: str


@dataclass(frozen=True, slots=True)
class VerificationDiscarded:
    """A check finished after its batch was discarded; the result was dropped."""

    node: str


@dataclass(frozen=True, slots=True)
class BatchVerificationStarted:
    nodes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class BatchVerificationCompleted:
    passed: tuple[str, ...]
    failed: tuple[str, ...]


# =============================================================================
# Commit Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class NodesCommitted:
    cluster: str
    nodes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class CommitFailed:
    cluster: str
    reason: str


# =============================================================================
# Union Type (ADT)
# =============================================================================

type ClusterdockEvent = (
    StageChanged
    | CredentialSupplied
    | SessionCancelled
    | ConnectivityVerified
    | ConnectivityFailed
    | InventoryLookupFailed
    | NodesDiscovered
    | DiscoveryFailed
    | SyncStarted
    | SelectionChanged
    | VerificationStarted
    | NodeVerified
    | VerificationDiscarded
    | BatchVerificationStarted
    | BatchVerificationCompleted
    | NodesCommitted
    | CommitFailed
)


__all__ = [
    # Session
    "StageChanged",
    "CredentialSupplied",
    "SessionCancelled",
    # Connectivity & discovery
    "ConnectivityVerified",
    "ConnectivityFailed",
    "InventoryLookupFailed",
    "NodesDiscovered",
    "DiscoveryFailed",
    "SyncStarted",
    # Verification
    "SelectionChanged",
    "VerificationStarted",
    "NodeVerified",
    "VerificationDiscarded",
    "BatchVerificationStarted",
    "BatchVerificationCompleted",
    # Commit
    "NodesCommitted",
    "CommitFailed",
    # Union type
    "ClusterdockEvent",
]
