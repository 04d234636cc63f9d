"""Node registry: the working set of one discovery batch.

Nodes live in an arena keyed by name. Every mutation swaps in a new frozen
record, so a caller holding an old ``CandidateNode`` never sees it change
under its feet. Only two kinds of mutation exist: selection toggles (always
allowed) and verification transitions (driven by the orchestrator).

Verification transitions::

    pending | success | failed → verifying → success | failed
    verifying → previous status            (check aborted without a result)

A node is ``verifying`` for exactly one in-flight check; starting a second
check for the same node is rejected.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import replace

from loguru import logger

from clusterdock.api.model import (
    CandidateNode,
    NodeName,
    VerificationResult,
    VerificationStatus,
)
from clusterdock.core.exceptions import (
    DuplicateNodeError,
    NodeNotFoundError,
    RegistryClosedError,
    VerificationInProgressError,
)


class NodeRegistry:
    def __init__(self, nodes: Iterable[CandidateNode] = ()) -> None:
        self._nodes: dict[NodeName, CandidateNode] = {}
        for node in nodes:
            if node.name in self._nodes:
                raise DuplicateNodeError(node.name)
            self._nodes[node.name] = node
        self._closed = False
        self._log = logger.bind(component="registry")

    @classmethod
    def from_discovery(cls, nodes: Iterable[CandidateNode]) -> NodeRegistry:
        """Build a registry from a discovery call, resetting per-batch state."""
        return cls(
            replace(
                n, selected=True, verification="pending",
                message=None, report=None, runtime=None,
            )
            for n in nodes
        )

    # ─── Queries ─────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[CandidateNode]:
        return iter(tuple(self._nodes.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, name: NodeName) -> CandidateNode:
        try:
            return self._nodes[name]
        except KeyError:
            raise NodeNotFoundError(name) from None

    def names(self) -> tuple[NodeName, ...]:
        return tuple(self._nodes)

    def nodes(self) -> tuple[CandidateNode, ...]:
        return tuple(self._nodes.values())

    def selected(self) -> tuple[CandidateNode, ...]:
        return tuple(n for n in self._nodes.values() if n.selected)

    def with_status(self, *statuses: VerificationStatus) -> tuple[CandidateNode, ...]:
        return tuple(n for n in self._nodes.values() if n.verification in statuses)

    def committable(self) -> tuple[CandidateNode, ...]:
        """Nodes that are both selected and verified successfully."""
        return tuple(n for n in self._nodes.values() if n.committable)

    # ─── Selection ───────────────────────────────────────────────────

    def set_selection(self, name: NodeName, selected: bool) -> CandidateNode:
        self._ensure_open()
        node = replace(self.get(name), selected=selected)
        self._nodes[name] = node
        return node

    def toggle_selection(self, name: NodeName) -> CandidateNode:
        return self.set_selection(name, not self.get(name).selected)

    # ─── Verification transitions ────────────────────────────────────

    def begin_verification(self, name: NodeName) -> CandidateNode:
        self._ensure_open()
        current = self.get(name)
        if current.verifying:
            raise VerificationInProgressError(name)
        node = replace(current, verification="verifying")
        self._nodes[name] = node
        self._log.debug("{node}: {prev} → verifying", node=name, prev=current.verification)
        return node

    def complete_verification(self, name: NodeName, result: VerificationResult) -> CandidateNode:
        """Record the outcome of the in-flight check, replacing any earlier one."""
        self._ensure_open()
        current = self.get(name)
        if not current.verifying:
            raise ValueError(f"Node {name!r} has no verification in flight")
        node = replace(
            current,
            verification=result.status,
            message=result.message,
            report=result.architecture,
        )
        self._nodes[name] = node
        self._log.debug("{node}: verifying → {status}", node=name, status=result.status)
        return node

    def abort_verification(self, name: NodeName, restore: VerificationStatus) -> CandidateNode:
        """Undo ``begin_verification`` for a check that never produced a result."""
        self._ensure_open()
        current = self.get(name)
        if not current.verifying:
            raise ValueError(f"Node {name!r} has no verification in flight")
        node = replace(current, verification=restore)
        self._nodes[name] = node
        self._log.debug("{node}: verifying → {status} (aborted)", node=name, status=restore)
        return node

    # ─── Lifecycle ───────────────────────────────────────────────────

    def close(self) -> None:
        """Discard the batch. Later transitions raise RegistryClosedError."""
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistryClosedError("Node registry was discarded")
