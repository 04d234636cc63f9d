"""Onboarding session controller: the five-stage import wizard as a state machine.

Tells this story:
  credential → connectivity → discovery → verification → commit
       ↑______________________________________________________|
                      (reset on commit or cancel)

| Stage | Leaves when                                   |
|-------|-----------------------------------------------|
| 1     | a non-blank credential was supplied           |
| 2     | the connectivity check returned cluster data  |
| 3     | discovery found at least one node             |
| 4     | a selected node passed verification           |
| 5     | the committable set was accepted (reset)      |

Stepping back is always allowed and keeps downstream state. Entering stage 3
from stage 2 runs discovery; re-entering it replaces the previous batch.

External-call failures (connectivity, discovery, commit) never raise out of
the controller: they are recorded on ``session.error`` and the session stays
where it is, so the operator can retry. Guard violations raise
``StageGuardError``.

The session is a frozen value that is swapped on every transition. Calls that
finish after the session was cancelled or completed find a different session
id and drop their results. A connectivity check whose credential changed, or a
discovery overtaken by a newer one, is dropped the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from uuid import uuid4

from loguru import logger

from clusterdock.api.model import (
    CandidateNode,
    ClusterMetadata,
    CommitAck,
    Credential,
    NodeName,
    Stage,
)
from clusterdock.api.protocols import (
    ConnectivityValidator,
    NodeDiscovery,
    NodeInventory,
    NodeVerifier,
)
from clusterdock.callback import emit
from clusterdock.config import Settings
from clusterdock.core.exceptions import StageGuardError
from clusterdock.credentials import read_credential
from clusterdock.events import (
    CommitFailed,
    ConnectivityFailed,
    ConnectivityVerified,
    CredentialSupplied,
    DiscoveryFailed,
    InventoryLookupFailed,
    NodesCommitted,
    NodesDiscovered,
    SelectionChanged,
    SessionCancelled,
    StageChanged,
)
from clusterdock.orchestrator import VerificationOrchestrator
from clusterdock.registry import NodeRegistry


def _new_session_id() -> str:
    return uuid4().hex[:12]


@dataclass(frozen=True, slots=True)
class OnboardingSession:
    id: str = field(default_factory=_new_session_id)
    stage: Stage = Stage.CREDENTIAL
    credential: Credential = ""
    cluster: ClusterMetadata | None = None
    nodes: NodeRegistry | None = None
    error: str | None = None
    connectivity_attempts: int = 0


def guard(session: OnboardingSession) -> str | None:
    """Why ``session`` cannot leave its current stage, or None if it can."""
    match session.stage:
        case Stage.CREDENTIAL:
            if not session.credential.strip():
                return "a credential is required"
        case Stage.CONNECTIVITY:
            if session.cluster is None:
                return "connectivity has not been verified"
        case Stage.DISCOVERY:
            if session.nodes is None or len(session.nodes) == 0:
                return "no nodes were discovered"
        case Stage.VERIFICATION:
            if session.nodes is None or not session.nodes.committable():
                return "no selected node has passed verification"
        case Stage.COMMIT:
            return "commit the selected nodes to finish onboarding"
    return None


class OnboardingController:
    def __init__(
        self,
        validator: ConnectivityValidator,
        discovery: NodeDiscovery,
        verifier: NodeVerifier,
        inventory: NodeInventory,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._validator = validator
        self._discovery = discovery
        self._verifier = verifier
        self._inventory = inventory
        self._settings = settings or Settings()
        self._session = OnboardingSession()
        self._orchestrator: VerificationOrchestrator | None = None
        self._discovery_token: object | None = None

    @property
    def session(self) -> OnboardingSession:
        return self._session

    @property
    def stage(self) -> Stage:
        return self._session.stage

    @property
    def _log(self):
        return logger.bind(component="onboarding", session_id=self._session.id)

    # ─── Stage 1: credential ─────────────────────────────────────────

    def supply_credential(self, credential: Credential) -> None:
        """Set the credential. Changing it drops any cluster found with the old one."""
        self._require_stage(Stage.CREDENTIAL, "the credential can only be changed in stage 1")
        if credential != self._session.credential:
            self._drop_nodes()
            self._session = replace(self._session, cluster=None, nodes=None)
        self._session = replace(self._session, credential=credential, error=None)
        emit(CredentialSupplied(session_id=self._session.id))

    def load_credential(self, path: str | Path) -> None:
        self.supply_credential(read_credential(path))

    # ─── Stage 2: connectivity ───────────────────────────────────────

    async def check_connectivity(self) -> ClusterMetadata | None:
        """Validate the credential. Failures are recorded; retry freely.

        The result only lands if the session is still in stage 2 with the
        same credential and no newer check was started meanwhile.
        """
        self._require_stage(Stage.CONNECTIVITY, "connectivity is checked in stage 2")
        attempt = self._session.connectivity_attempts + 1
        self._session = replace(
            self._session, cluster=None, error=None, connectivity_attempts=attempt,
        )
        check = (self._session.id, self._session.credential, attempt)
        self._log.info("Checking connectivity (attempt {n})", n=attempt)

        try:
            cluster = await self._validator.validate_connectivity(self._session.credential)
        except Exception as e:
            if self._is_current(check):
                self._connectivity_failed(attempt, f"{type(e).__name__}: {e}")
            return None

        try:
            already_managed = bool(await self._inventory.list_nodes(cluster.name))
        except Exception as e:
            if self._is_current(check):
                reason = f"{type(e).__name__}: {e}"
                self._log.warning("Inventory lookup failed: {reason}", reason=reason)
                self._session = replace(self._session, error=f"Inventory lookup failed: {reason}")
                emit(InventoryLookupFailed(cluster=cluster.name, reason=reason))
            return None

        if not self._is_current(check):
            self._log.info("Session moved on during connectivity check, dropping result")
            return None
        if already_managed:
            return self._connectivity_failed(
                attempt, f"Cluster {cluster.name!r} is already onboarded; sync it to add new nodes",
            )

        self._session = replace(self._session, cluster=cluster)
        self._log.info(
            "Connected to {name} ({version}) at {endpoint}",
            name=cluster.name, version=cluster.control_plane_version,
            endpoint=cluster.api_endpoint,
        )
        emit(ConnectivityVerified(
            cluster=cluster.name,
            version=cluster.control_plane_version,
            endpoint=cluster.api_endpoint,
            reported_nodes=cluster.reported_node_count,
        ))
        return cluster

    def _is_current(self, check: tuple[str, Credential, int]) -> bool:
        session_id, credential, attempt = check
        s = self._session
        return (
            s.id == session_id
            and s.stage == Stage.CONNECTIVITY
            and s.credential == credential
            and s.connectivity_attempts == attempt
        )

    def _connectivity_failed(self, attempt: int, reason: str) -> None:
        self._log.warning("Connectivity check failed: {reason}", reason=reason)
        self._session = replace(self._session, error=reason)
        emit(ConnectivityFailed(reason=reason, attempt=attempt))
        return None

    # ─── Stage 3: discovery ──────────────────────────────────────────

    async def _discover(self) -> None:
        cluster = self._session.cluster
        assert cluster is not None
        self._drop_nodes()
        self._session = replace(self._session, nodes=None, error=None)
        token = self._discovery_token = object()
        session_id = self._session.id
        self._log.info("Discovering nodes in {cluster}", cluster=cluster.name)

        error: str | None = None
        try:
            registry = NodeRegistry.from_discovery(await self._discovery.discover_nodes(cluster))
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            registry = NodeRegistry()

        if self._session.id != session_id or self._discovery_token is not token:
            self._log.info("Discovery superseded, dropping result")
            registry.close()
            return
        self._discovery_token = None

        self._session = replace(self._session, nodes=registry, error=error)
        self._orchestrator = VerificationOrchestrator(
            registry, self._verifier, timeout=self._settings.verification.timeout,
        )
        if error is not None:
            self._log.warning("Discovery failed: {reason}", reason=error)
            emit(DiscoveryFailed(cluster=cluster.name, reason=error))
            return

        self._log.info("Discovered {n} nodes", n=len(registry))
        emit(NodesDiscovered(cluster=cluster.name, nodes=registry.names()))

    # ─── Stage 4: verification ───────────────────────────────────────

    def toggle_selection(self, name: NodeName) -> CandidateNode:
        node = self._require_registry().toggle_selection(name)
        emit(SelectionChanged(node=name, selected=node.selected))
        return node

    async def verify_node(self, name: NodeName) -> CandidateNode | None:
        self._require_stage(Stage.VERIFICATION, "nodes are verified in stage 4")
        return await self._require_orchestrator().verify(name)

    async def verify_all(self) -> tuple[CandidateNode, ...]:
        self._require_stage(Stage.VERIFICATION, "nodes are verified in stage 4")
        return await self._require_orchestrator().verify_all()

    def committable(self) -> tuple[CandidateNode, ...]:
        if self._session.nodes is None:
            return ()
        return self._session.nodes.committable()

    # ─── Stage 5: commit ─────────────────────────────────────────────

    async def commit(self) -> CommitAck | None:
        """Send the selected, verified nodes to the inventory and reset.

        On failure the session stays in stage 5 with ``error`` set, so the
        commit can be retried without re-discovering or re-verifying.
        """
        self._require_stage(Stage.COMMIT, "commit happens in stage 5")
        cluster = self._session.cluster
        assert cluster is not None
        nodes = self.committable()
        if not nodes:
            raise StageGuardError(Stage.COMMIT, "no selected node has passed verification")

        session_id = self._session.id
        self._log.info(
            "Committing {n} nodes to {cluster}", n=len(nodes), cluster=cluster.name,
        )
        try:
            ack = await self._inventory.commit_nodes(cluster, nodes)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            if self._session.id == session_id:
                self._log.error("Commit failed: {reason}", reason=reason)
                self._session = replace(self._session, error=reason)
            emit(CommitFailed(cluster=cluster.name, reason=reason))
            return None

        emit(NodesCommitted(cluster=cluster.name, nodes=ack.accepted))
        if self._session.id == session_id:
            self._reset()
        return ack

    # ─── Navigation ──────────────────────────────────────────────────

    def can_advance(self) -> bool:
        return guard(self._session) is None

    async def advance(self) -> Stage:
        """Move to the next stage if the current stage's guard holds."""
        current = self._session.stage
        if (reason := guard(self._session)) is not None:
            raise StageGuardError(current, reason)
        self._enter(Stage(current + 1))
        if self._session.stage == Stage.DISCOVERY:
            await self._discover()
        return self._session.stage

    def back(self) -> Stage:
        current = self._session.stage
        if current == Stage.CREDENTIAL:
            raise StageGuardError(current, "already at the first stage")
        self._enter(Stage(current - 1))
        return self._session.stage

    def cancel(self) -> None:
        """Discard the whole session. In-flight calls finish but are not applied."""
        self._log.info("Session cancelled at stage {stage}", stage=int(self._session.stage))
        emit(SessionCancelled(session_id=self._session.id, stage=self._session.stage))
        self._reset()

    def _enter(self, stage: Stage) -> None:
        previous = self._session.stage
        self._session = replace(self._session, stage=stage, error=None)
        self._log.debug("Stage {prev} → {cur}", prev=int(previous), cur=int(stage))
        emit(StageChanged(session_id=self._session.id, previous=previous, current=stage))

    def _reset(self) -> None:
        self._drop_nodes()
        self._session = OnboardingSession()

    def _drop_nodes(self) -> None:
        if self._session.nodes is not None:
            self._session.nodes.close()
        self._orchestrator = None
        self._discovery_token = None

    # ─── Preconditions ───────────────────────────────────────────────

    def _require_stage(self, stage: Stage, reason: str) -> None:
        if self._session.stage != stage:
            raise StageGuardError(self._session.stage, reason)

    def _require_registry(self) -> NodeRegistry:
        if self._session.nodes is None:
            raise StageGuardError(self._session.stage, "no nodes have been discovered")
        return self._session.nodes

    def _require_orchestrator(self) -> VerificationOrchestrator:
        if self._orchestrator is None:
            raise StageGuardError(self._session.stage, "no nodes have been discovered")
        return self._orchestrator
