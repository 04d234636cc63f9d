"""Simulated cluster for demos and local development.

``SimulatedCluster`` plays all three cluster-facing roles (connectivity
validator, node discovery and node verifier) against a fixed set of GPU
nodes. Verification outcomes are drawn from a seeded RNG so a run can be
replayed; production deployments use a real agent instead.

Example:
    cluster = SimulatedCluster(seed=7, failure_rate=0.2)
    controller = OnboardingController(cluster, cluster, cluster, InMemoryNodeInventory())
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final

from clusterdock.api.model import (
    CandidateNode,
    ClusterMetadata,
    Credential,
    NodeArchitecture,
    VerificationResult,
)
from clusterdock.core.exceptions import ConnectivityError

PASS_MESSAGE: Final = "Environment verified: GPU driver, CUDA and container runtime are healthy"
FAIL_MESSAGE: Final = "GPU driver version mismatch: upgrade to the 535.x series"

_ARCHITECTURES: Final[dict[str, NodeArchitecture]] = {
    "NVIDIA A100": NodeArchitecture(
        accelerator_generation="Ampere",
        compute_capability="8.0",
        driver_version="535.129.03",
        cuda_version="12.2",
        container_runtime="containerd",
        runtime_version="1.7.2",
        network_fabric="InfiniBand HDR 200Gbps",
    ),
    "NVIDIA V100": NodeArchitecture(
        accelerator_generation="Volta",
        compute_capability="7.0",
        driver_version="535.129.03",
        cuda_version="12.2",
        container_runtime="containerd",
        runtime_version="1.7.2",
        network_fabric="Ethernet 100Gbps",
    ),
    "NVIDIA H100": NodeArchitecture(
        accelerator_generation="Hopper",
        compute_capability="9.0",
        driver_version="535.129.03",
        cuda_version="12.2",
        container_runtime="containerd",
        runtime_version="1.7.2",
        network_fabric="InfiniBand NDR 400Gbps",
    ),
}

DEFAULT_CLUSTER: Final = ClusterMetadata(
    name="kubernetes-cluster-prod",
    control_plane_version="v1.28.3",
    api_endpoint="https://192.168.1.100:6443",
    provider="Karmada",
    reported_node_count=3,
)

DEFAULT_NODES: Final[tuple[CandidateNode, ...]] = (
    CandidateNode("gpu-node-01", "192.168.1.101", "NVIDIA A100", 8, 128, 512),
    CandidateNode("gpu-node-02", "192.168.1.102", "NVIDIA A100", 8, 128, 512),
    CandidateNode("gpu-node-03", "192.168.1.103", "NVIDIA V100", 4, 64, 256),
)


@dataclass
class SimulatedCluster:
    cluster: ClusterMetadata = DEFAULT_CLUSTER
    nodes: Sequence[CandidateNode] = DEFAULT_NODES
    failure_rate: float = 0.2
    seed: int | None = None
    delay: float = 0.0
    accepted_credentials: frozenset[str] | None = None
    _rng: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {self.failure_rate}")
        self._rng = random.Random(self.seed)

    def join(self, *nodes: CandidateNode) -> None:
        """Add nodes to the cluster, as if they had just registered."""
        self.nodes = (*self.nodes, *nodes)

    async def validate_connectivity(self, credential: Credential) -> ClusterMetadata:
        await asyncio.sleep(self.delay)
        if self.accepted_credentials is not None and credential not in self.accepted_credentials:
            raise ConnectivityError("Unauthorized: credential was rejected by the API server")
        return self.cluster

    async def discover_nodes(self, cluster: ClusterMetadata) -> Sequence[CandidateNode]:
        await asyncio.sleep(self.delay)
        return tuple(self.nodes)

    async def verify_node(self, node: CandidateNode) -> VerificationResult:
        await asyncio.sleep(self.delay)
        if self._rng.random() < self.failure_rate:
            return VerificationResult(passed=False, message=FAIL_MESSAGE)
        return VerificationResult(
            passed=True,
            message=PASS_MESSAGE,
            architecture=_ARCHITECTURES.get(node.accelerator_model),
        )
