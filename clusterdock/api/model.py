from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Literal

type Credential = str
type NodeName = str
type VerificationStatus = Literal["pending", "verifying", "success", "failed"]
type NodeStatus = Literal["running", "warning", "offline"]


class Stage(IntEnum):
    """Onboarding wizard stages, in the order they are entered."""

    CREDENTIAL = 1
    CONNECTIVITY = 2
    DISCOVERY = 3
    VERIFICATION = 4
    COMMIT = 5


@dataclass(frozen=True, slots=True)
class ClusterMetadata:
    """What the control plane reported when the credential was validated."""

    name: str
    control_plane_version: str
    api_endpoint: str
    provider: str
    reported_node_count: int


@dataclass(frozen=True, slots=True)
class NodeArchitecture:
    """Environment details reported by the node agent during verification."""

    accelerator_generation: str | None = None
    compute_capability: str | None = None
    driver_version: str | None = None
    cuda_version: str | None = None
    container_runtime: str | None = None
    runtime_version: str | None = None
    network_fabric: str | None = None


@dataclass(frozen=True, slots=True)
class ResourceUtilization:
    accelerators_used: int = 0
    cpu_percent: float = 0.0
    memory_gb_used: float = 0.0
    disk_gb_used: float = 0.0
    disk_gb_total: float = 0.0


@dataclass(frozen=True, slots=True)
class RuntimeMetadata:
    """Operational view of a node, attached by the inventory on commit."""

    status: NodeStatus = "running"
    utilization: ResourceUtilization = field(default_factory=ResourceUtilization)
    architecture: NodeArchitecture | None = None
    joined_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class CandidateNode:
    """A compute node discovered in an external cluster, not yet committed.

    Records are immutable; the registry replaces the whole record on every
    selection or verification transition.
    """

    name: NodeName
    address: str
    accelerator_model: str
    accelerator_count: int
    cpu_cores: int
    memory_gb: int
    selected: bool = True
    verification: VerificationStatus = "pending"
    message: str | None = None
    report: NodeArchitecture | None = None
    runtime: RuntimeMetadata | None = None

    @property
    def verifying(self) -> bool:
        return self.verification == "verifying"

    @property
    def verified(self) -> bool:
        return self.verification in ("success", "failed")

    @property
    def committable(self) -> bool:
        return self.selected and self.verification == "success"


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Strict pass/fail outcome of one environment check."""

    passed: bool
    message: str
    architecture: NodeArchitecture | None = None

    @property
    def status(self) -> VerificationStatus:
        return "success" if self.passed else "failed"


@dataclass(frozen=True, slots=True)
class CommitAck:
    cluster: str
    accepted: tuple[NodeName, ...]
    committed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
