"""Sync controller: pick up nodes that joined an already onboarded cluster.

Tells this story:
  discover (new nodes only) → verify → confirm → inventory

A sync works on its own short-lived batch. It never shares node records with
an onboarding session, so a sync and an onboarding of a different cluster can
run side by side without coordination.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from loguru import logger

from clusterdock.api.model import CandidateNode, ClusterMetadata, CommitAck, NodeName
from clusterdock.api.protocols import NodeDiscovery, NodeInventory, NodeVerifier
from clusterdock.callback import emit
from clusterdock.config import Settings
from clusterdock.core.exceptions import ClusterNotManagedError, SyncStateError
from clusterdock.events import (
    CommitFailed,
    DiscoveryFailed,
    NodesCommitted,
    NodesDiscovered,
    SelectionChanged,
    SyncStarted,
)
from clusterdock.orchestrator import VerificationOrchestrator
from clusterdock.registry import NodeRegistry


@dataclass(frozen=True, slots=True)
class SyncBatch:
    cluster: ClusterMetadata
    nodes: NodeRegistry
    known: frozenset[NodeName]
    error: str | None = None


class SyncController:
    def __init__(
        self,
        cluster: ClusterMetadata,
        discovery: NodeDiscovery,
        verifier: NodeVerifier,
        inventory: NodeInventory,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._cluster = cluster
        self._discovery = discovery
        self._verifier = verifier
        self._inventory = inventory
        self._settings = settings or Settings()
        self._batch: SyncBatch | None = None
        self._orchestrator: VerificationOrchestrator | None = None
        self._log = logger.bind(component="sync", cluster=cluster.name)

    @property
    def cluster(self) -> ClusterMetadata:
        return self._cluster

    @property
    def batch(self) -> SyncBatch | None:
        return self._batch

    async def discover(self) -> SyncBatch:
        """Find nodes present in the cluster but not yet in the inventory.

        The current batch is only replaced once the inventory lookup succeeded.

        Raises:
            ClusterNotManagedError: The cluster was never onboarded.
        """
        known = frozenset(n.name for n in await self._inventory.list_nodes(self._cluster.name))
        if not known:
            raise ClusterNotManagedError(self._cluster.name)
        self.cancel()

        self._log.info("Syncing, {n} nodes already in inventory", n=len(known))
        emit(SyncStarted(cluster=self._cluster.name, known_nodes=len(known)))

        error: str | None = None
        try:
            found = await self._discovery.discover_nodes(self._cluster)
            registry = NodeRegistry.from_discovery(n for n in found if n.name not in known)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            registry = NodeRegistry()

        batch = SyncBatch(cluster=self._cluster, nodes=registry, known=known, error=error)
        self._batch = batch
        self._orchestrator = VerificationOrchestrator(
            registry, self._verifier, timeout=self._settings.verification.timeout,
        )

        if error is not None:
            self._log.warning("Discovery failed: {reason}", reason=error)
            emit(DiscoveryFailed(cluster=self._cluster.name, reason=error))
        else:
            self._log.info("Found {n} new nodes", n=len(registry))
            emit(NodesDiscovered(cluster=self._cluster.name, nodes=registry.names()))
        return batch

    def toggle_selection(self, name: NodeName) -> CandidateNode:
        node = self._require_batch().nodes.toggle_selection(name)
        emit(SelectionChanged(node=name, selected=node.selected))
        return node

    async def verify_node(self, name: NodeName) -> CandidateNode | None:
        return await self._require_orchestrator().verify(name)

    async def verify_all(self) -> tuple[CandidateNode, ...]:
        return await self._require_orchestrator().verify_all()

    def committable(self) -> tuple[CandidateNode, ...]:
        if self._batch is None:
            return ()
        return self._batch.nodes.committable()

    async def confirm(self) -> CommitAck | None:
        """Commit the selected, verified nodes and discard the batch.

        On failure the batch is kept with ``error`` set so the operator can
        confirm again.
        """
        batch = self._require_batch()
        nodes = batch.nodes.committable()
        if not nodes:
            raise SyncStateError("No selected node has passed verification")

        self._log.info("Committing {n} new nodes", n=len(nodes))
        try:
            ack = await self._inventory.commit_nodes(self._cluster, nodes)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            self._log.error("Commit failed: {reason}", reason=reason)
            if self._batch is batch:
                self._batch = replace(batch, error=reason)
            emit(CommitFailed(cluster=self._cluster.name, reason=reason))
            return None

        emit(NodesCommitted(cluster=self._cluster.name, nodes=ack.accepted))
        if self._batch is batch:
            self.cancel()
        return ack

    def cancel(self) -> None:
        """Discard the current batch, if any."""
        if self._batch is not None:
            self._batch.nodes.close()
        self._batch = None
        self._orchestrator = None

    def _require_batch(self) -> SyncBatch:
        if self._batch is None:
            raise SyncStateError("No sync batch; call discover() first")
        return self._batch

    def _require_orchestrator(self) -> VerificationOrchestrator:
        self._require_batch()
        assert self._orchestrator is not None
        return self._orchestrator
