"""Custom exception hierarchy for clusterdock.

All clusterdock-specific exceptions inherit from ClusterdockError, enabling
callers to catch every onboarding failure with a single except clause.

Operator precondition violations (advancing past an unmet guard, verifying a
deselected node) are raised. Failures of external calls (connectivity,
discovery, commit) are recorded on the session and surfaced instead.
"""

from __future__ import annotations


class ClusterdockError(Exception):
    """Base exception for all clusterdock errors."""


class ConfigurationError(ClusterdockError):
    """Raised for invalid configuration or missing required settings."""


class StageGuardError(ClusterdockError):
    """Raised when a stage transition or stage-bound action is not allowed yet."""

    def __init__(self, stage: int, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"Stage {stage}: {reason}")


class NodeNotFoundError(ClusterdockError, KeyError):
    """Raised when a node name is not part of the current batch."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Node {name!r} is not part of this batch")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateNodeError(ClusterdockError):
    """Raised when a discovery batch contains the same node name twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Node name {name!r} appears more than once in the batch")


class NodeNotSelectedError(ClusterdockError):
    """Raised when verification is requested for a deselected node."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Node {name!r} is not selected")


class VerificationInProgressError(ClusterdockError):
    """Raised when a node already has a verification in flight."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Node {name!r} is already being verified")


class RegistryClosedError(ClusterdockError):
    """Raised when a discarded registry is mutated."""


class ConnectivityError(ClusterdockError):
    """Raised by validators when the cluster cannot be reached with a credential."""


class DiscoveryError(ClusterdockError):
    """Raised by discovery backends when node enumeration fails."""


class CommitError(ClusterdockError):
    """Raised by inventories when a commit is rejected as a whole."""


class SyncStateError(ClusterdockError):
    """Raised when a sync action is attempted without a usable batch."""


class ClusterNotManagedError(ClusterdockError):
    """Raised when syncing a cluster that was never onboarded."""

    def __init__(self, cluster: str) -> None:
        self.cluster = cluster
        super().__init__(f"Cluster {cluster!r} is not in the node inventory")
