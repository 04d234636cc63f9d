"""In-process node inventory.

A reference ``NodeInventory`` that keeps committed nodes in memory, per
cluster. Commits are all or nothing: the whole batch is validated before any
node is stored. Each accepted node gets runtime metadata built from its last
verification report.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import replace

from loguru import logger

from clusterdock.api.model import (
    CandidateNode,
    ClusterMetadata,
    CommitAck,
    NodeName,
    RuntimeMetadata,
)
from clusterdock.core.exceptions import CommitError


class InMemoryNodeInventory:
    def __init__(self) -> None:
        self._clusters: dict[str, ClusterMetadata] = {}
        self._nodes: dict[str, dict[NodeName, CandidateNode]] = {}
        self._lock = asyncio.Lock()
        self._log = logger.bind(component="inventory")

    async def commit_nodes(
        self, cluster: ClusterMetadata, nodes: Sequence[CandidateNode],
    ) -> CommitAck:
        async with self._lock:
            if not nodes:
                raise CommitError(f"Nothing to commit for {cluster.name}")

            existing = self._nodes.get(cluster.name, {})
            names = [n.name for n in nodes]
            if dupes := sorted({n for n in names if names.count(n) > 1}):
                raise CommitError(f"Duplicate node names in commit: {', '.join(dupes)}")
            if clash := sorted(set(names) & existing.keys()):
                raise CommitError(
                    f"Node(s) already in inventory for {cluster.name}: {', '.join(clash)}"
                )
            if rejected := sorted(n.name for n in nodes if n.verification != "success"):
                raise CommitError(f"Unverified node(s) in commit: {', '.join(rejected)}")

            stored = {
                n.name: replace(n, runtime=RuntimeMetadata(architecture=n.report))
                for n in nodes
            }
            self._clusters[cluster.name] = cluster
            self._nodes[cluster.name] = {**existing, **stored}
            self._log.info(
                "Committed {n} nodes to {cluster}", n=len(stored), cluster=cluster.name,
            )
            return CommitAck(cluster=cluster.name, accepted=tuple(stored))

    async def list_nodes(self, cluster_name: str) -> Sequence[CandidateNode]:
        return tuple(self._nodes.get(cluster_name, {}).values())

    def clusters(self) -> tuple[ClusterMetadata, ...]:
        return tuple(self._clusters.values())

    def has_cluster(self, cluster_name: str) -> bool:
        return cluster_name in self._clusters
