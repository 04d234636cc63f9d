"""clusterdock - Onboard external compute clusters node by node.

An operator imports a cluster with its access credential; clusterdock checks
connectivity, discovers the cluster's compute nodes, verifies each node's
runtime environment (drivers, accelerators, container runtime) and commits
only the nodes that passed into the platform's node inventory.

Example:

    from clusterdock import (
        InMemoryNodeInventory, OnboardingController, SimulatedCluster,
    )

    cluster = SimulatedCluster(seed=7)
    inventory = InMemoryNodeInventory()
    onboarding = OnboardingController(cluster, cluster, cluster, inventory)

    onboarding.supply_credential(kubeconfig)
    await onboarding.advance()              # → connectivity
    await onboarding.check_connectivity()
    await onboarding.advance()              # → discovery
    await onboarding.advance()              # → verification
    await onboarding.verify_all()
    await onboarding.advance()              # → commit
    ack = await onboarding.commit()
"""

# Data model and contracts
from clusterdock.api import (
    CandidateNode,
    ClusterMetadata,
    CommitAck,
    ConnectivityValidator,
    NodeArchitecture,
    NodeDiscovery,
    NodeInventory,
    NodeVerifier,
    RuntimeMetadata,
    Stage,
    VerificationResult,
)

# Callback system
from clusterdock.callback import Callback, compose, emit, use_callback
from clusterdock.callbacks import ConsoleReporter, EventHistory

# Configuration
from clusterdock.config import Settings, resolve_settings

# Exceptions
from clusterdock.core.exceptions import (
    ClusterdockError,
    ClusterNotManagedError,
    CommitError,
    ConfigurationError,
    ConnectivityError,
    DiscoveryError,
    NodeNotSelectedError,
    StageGuardError,
    SyncStateError,
    VerificationInProgressError,
)

# Inventory
from clusterdock.inventory import InMemoryNodeInventory

# Logging
from clusterdock.observability.logging import LogConfig, setup_logging, teardown_logging

# Verification
from clusterdock.orchestrator import VerificationOrchestrator

# Adapters
from clusterdock.providers import SimulatedCluster, build_backends
from clusterdock.registry import NodeRegistry

# Controllers
from clusterdock.session import OnboardingController, OnboardingSession
from clusterdock.sync import SyncBatch, SyncController

__version__ = "0.1.0"

__all__ = [
    # Data model
    "CandidateNode",
    "ClusterMetadata",
    "CommitAck",
    "NodeArchitecture",
    "RuntimeMetadata",
    "Stage",
    "VerificationResult",
    # Contracts
    "ConnectivityValidator",
    "NodeDiscovery",
    "NodeInventory",
    "NodeVerifier",
    # Callbacks
    "Callback",
    "ConsoleReporter",
    "EventHistory",
    "compose",
    "emit",
    "use_callback",
    # Config
    "Settings",
    "resolve_settings",
    # Exceptions
    "ClusterdockError",
    "ClusterNotManagedError",
    "CommitError",
    "ConfigurationError",
    "ConnectivityError",
    "DiscoveryError",
    "NodeNotSelectedError",
    "StageGuardError",
    "SyncStateError",
    "VerificationInProgressError",
    # Core
    "InMemoryNodeInventory",
    "NodeRegistry",
    "OnboardingController",
    "OnboardingSession",
    "SyncBatch",
    "SyncController",
    "VerificationOrchestrator",
    # Adapters
    "SimulatedCluster",
    "build_backends",
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
]
