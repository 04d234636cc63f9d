from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from clusterdock.api.model import (
    CandidateNode,
    ClusterMetadata,
    CommitAck,
    Credential,
    VerificationResult,
)


@runtime_checkable
class ConnectivityValidator(Protocol):
    """Validates an access credential against a remote control plane."""

    async def validate_connectivity(self, credential: Credential) -> ClusterMetadata:
        """Check that the cluster is reachable with ``credential``.

        Parameters
        ----------
        credential
            Opaque access configuration supplied by the operator
            (typically a kubeconfig document).

        Returns
        -------
        ClusterMetadata
            Name, control-plane version, endpoint, provider and the node
            count the control plane reports.

        Raises
        ------
        ConnectivityError
            When the credential is rejected or the endpoint is unreachable.
        """
        ...


@runtime_checkable
class NodeDiscovery(Protocol):
    """Enumerates compute nodes registered in a cluster."""

    async def discover_nodes(self, cluster: ClusterMetadata) -> Sequence[CandidateNode]:
        """List the cluster's compute nodes in a single bulk call.

        Returned nodes are fresh candidates: ``selected=True`` and
        ``verification="pending"``. Names are unique within one call.
        """
        ...


@runtime_checkable
class NodeVerifier(Protocol):
    """Runs the environment check (drivers, accelerators, container runtime)."""

    async def verify_node(self, node: CandidateNode) -> VerificationResult:
        """Inspect ``node`` and return a strict pass/fail plus a diagnostic.

        Must be idempotent and free of side effects on the platform: it only
        inspects the remote node.
        """
        ...


@runtime_checkable
class NodeInventory(Protocol):
    """The platform's node inventory: the sink for committed nodes."""

    async def commit_nodes(
        self, cluster: ClusterMetadata, nodes: Sequence[CandidateNode],
    ) -> CommitAck:
        """Accept ``nodes`` into the inventory, all or nothing.

        Raises
        ------
        CommitError
            When the inventory rejects the batch. Nothing is stored.
        """
        ...

    async def list_nodes(self, cluster_name: str) -> Sequence[CandidateNode]:
        """Return the nodes already committed for ``cluster_name``."""
        ...
