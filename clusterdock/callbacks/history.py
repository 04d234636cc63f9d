"""Cluster event log: a timestamped, severity-tagged history of events.

Example:
    history = EventHistory()
    with use_callback(history):
        await controller.verify_all()

    for entry in history.entries(severity="error"):
        print(entry.time, entry.title, entry.message)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from clusterdock.events import (
    BatchVerificationCompleted,
    BatchVerificationStarted,
    ClusterdockEvent,
    CommitFailed,
    ConnectivityFailed,
    ConnectivityVerified,
    CredentialSupplied,
    DiscoveryFailed,
    InventoryLookupFailed,
    NodesCommitted,
    NodesDiscovered,
    NodeVerified,
    SelectionChanged,
    SessionCancelled,
    StageChanged,
    SyncStarted,
    VerificationDiscarded,
    VerificationStarted,
)

type Severity = Literal["info", "success", "warning", "error"]


def describe(event: ClusterdockEvent) -> tuple[Severity, str, str]:
    """Severity, short title and human-readable message for an event."""
    match event:
        case StageChanged(previous=prev, current=cur):
            return "info", "Stage changed", f"Stage {int(prev)} → {int(cur)}"
        case CredentialSupplied():
            return "info", "Credential supplied", "Cluster credential received"
        case SessionCancelled(stage=stage):
            return "warning", "Onboarding cancelled", f"Session discarded at stage {int(stage)}"
        case ConnectivityVerified(cluster=c, version=v, endpoint=ep, reported_nodes=n):
            return "success", "Connectivity verified", f"{c} {v} at {ep} reports {n} nodes"
        case ConnectivityFailed(reason=reason, attempt=attempt):
            return "error", "Connectivity failed", f"Attempt {attempt}: {reason}"
        case InventoryLookupFailed(cluster=c, reason=reason):
            return "error", "Inventory lookup failed", f"{c}: {reason}"
        case NodesDiscovered(cluster=c, nodes=nodes):
            return "info", "Nodes discovered", f"{len(nodes)} nodes found in {c}"
        case DiscoveryFailed(cluster=c, reason=reason):
            return "error", "Discovery failed", f"{c}: {reason}"
        case SyncStarted(cluster=c, known_nodes=n):
            return "info", "Sync started", f"{c} has {n} nodes in inventory"
        case SelectionChanged(node=node, selected=selected):
            state = "selected" if selected else "deselected"
            return "info", "Selection changed", f"Node {node} {state}"
        case VerificationStarted(node=node):
            return "info", "Verification started", f"Verifying node {node}"
        case NodeVerified(node=node, passed=True, message=msg):
            return "success", "Node verified", f"Node {node}: {msg}"
        case NodeVerified(node=node, message=msg):
            return "warning", "Node verification failed", f"Node {node}: {msg}"
        case VerificationDiscarded(node=node):
            return "info", "Verification discarded", f"Result for node {node} dropped"
        case BatchVerificationStarted(nodes=nodes):
            return "info", "Batch verification", f"Verifying {len(nodes)} nodes"
        case BatchVerificationCompleted(passed=ok, failed=bad):
            severity: Severity = "success" if not bad else "warning"
            return severity, "Batch verification", f"{len(ok)} passed, {len(bad)} failed"
        case NodesCommitted(cluster=c, nodes=nodes):
            return "success", "Nodes joined", f"{len(nodes)} nodes added to {c}"
        case CommitFailed(cluster=c, reason=reason):
            return "error", "Commit failed", f"{c}: {reason}"
    return "info", type(event).__name__, str(event)


@dataclass(frozen=True, slots=True)
class EventRecord:
    time: datetime
    severity: Severity
    title: str
    message: str
    event: ClusterdockEvent


@dataclass
class EventHistory:
    """Callback that records every event it receives."""

    limit: int | None = 1000
    _records: list[EventRecord] = field(default_factory=list, repr=False)

    def __call__(self, event: ClusterdockEvent) -> None:
        severity, title, message = describe(event)
        self._records.append(EventRecord(
            time=datetime.now(UTC),
            severity=severity,
            title=title,
            message=message,
            event=event,
        ))
        if self.limit is not None and len(self._records) > self.limit:
            del self._records[: len(self._records) - self.limit]

    def __len__(self) -> int:
        return len(self._records)

    def entries(self, *, severity: Severity | None = None) -> tuple[EventRecord, ...]:
        return tuple(r for r in self._records if severity is None or r.severity == severity)

    def events[E](self, kind: type[E]) -> tuple[E, ...]:
        return tuple(r.event for r in self._records if isinstance(r.event, kind))

    def clear(self) -> None:
        self._records.clear()
