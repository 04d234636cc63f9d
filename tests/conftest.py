from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import pytest

from clusterdock.api.model import (
    CandidateNode,
    ClusterMetadata,
    CommitAck,
    Credential,
    VerificationResult,
)
from clusterdock.core.exceptions import CommitError
from clusterdock.inventory import InMemoryNodeInventory

CLUSTER = ClusterMetadata(
    name="gpu-prod",
    control_plane_version="v1.28.3",
    api_endpoint="https://10.0.0.1:6443",
    provider="Karmada",
    reported_node_count=3,
)


def make_node(name: str, **overrides) -> CandidateNode:
    fields = {
        "address": f"10.0.1.{int(name.rsplit('-', 1)[-1])}",
        "accelerator_model": "NVIDIA A100",
        "accelerator_count": 8,
        "cpu_cores": 128,
        "memory_gb": 512,
    }
    fields.update(overrides)
    return CandidateNode(name=name, **fields)


NODES = (make_node("gpu-node-1"), make_node("gpu-node-2"), make_node("gpu-node-3"))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@dataclass
class FakeCluster:
    """Scripted validator, discovery and verifier.

    ``connectivity`` is consumed one outcome per call: an exception is raised,
    a ClusterMetadata is returned. When exhausted, ``cluster`` is returned.
    ``verdicts`` maps node names to queued pass/fail outcomes (default pass).
    ``gates`` hold a node's verification open until the event is set.
    """

    cluster: ClusterMetadata = CLUSTER
    nodes: Sequence[CandidateNode] = NODES
    connectivity: list[ClusterMetadata | Exception] = field(default_factory=list)
    discovery_error: Exception | None = None
    verdicts: dict[str, list[bool]] = field(default_factory=dict)
    verify_errors: dict[str, Exception] = field(default_factory=dict)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    validate_calls: list[Credential] = field(default_factory=list)
    discover_calls: int = 0
    verify_calls: list[str] = field(default_factory=list)
    active: int = 0
    max_active: int = 0

    async def validate_connectivity(self, credential: Credential) -> ClusterMetadata:
        self.validate_calls.append(credential)
        await asyncio.sleep(0)
        if self.connectivity:
            outcome = self.connectivity.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return self.cluster

    async def discover_nodes(self, cluster: ClusterMetadata) -> Sequence[CandidateNode]:
        self.discover_calls += 1
        await asyncio.sleep(0)
        if self.discovery_error is not None:
            raise self.discovery_error
        return tuple(self.nodes)

    async def verify_node(self, node: CandidateNode) -> VerificationResult:
        self.verify_calls.append(node.name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if (gate := self.gates.get(node.name)) is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0.01)
            if (error := self.verify_errors.get(node.name)) is not None:
                raise error
            queue = self.verdicts.get(node.name)
            passed = queue.pop(0) if queue else True
            message = f"{node.name} ok" if passed else f"{node.name} driver mismatch"
            return VerificationResult(passed=passed, message=message)
        finally:
            self.active -= 1


class RecordingInventory(InMemoryNodeInventory):
    """In-memory inventory that records commits and can fail the first N.

    ``fail_lookups`` makes the next N ``list_nodes`` calls raise.
    """

    def __init__(self, fail_commits: int = 0, fail_lookups: int = 0) -> None:
        super().__init__()
        self.fail_commits = fail_commits
        self.fail_lookups = fail_lookups
        self.commits: list[tuple[str, tuple[str, ...]]] = []

    async def commit_nodes(
        self, cluster: ClusterMetadata, nodes: Sequence[CandidateNode],
    ) -> CommitAck:
        self.commits.append((cluster.name, tuple(n.name for n in nodes)))
        if self.fail_commits > 0:
            self.fail_commits -= 1
            raise CommitError("inventory unavailable")
        return await super().commit_nodes(cluster, nodes)

    async def list_nodes(self, cluster_name: str) -> Sequence[CandidateNode]:
        if self.fail_lookups > 0:
            self.fail_lookups -= 1
            raise ConnectionError("inventory unreachable")
        return await super().list_nodes(cluster_name)


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def inventory() -> RecordingInventory:
    return RecordingInventory()
