"""Verification orchestrator: runs environment checks against a registry.

Two entry points share one per-node procedure:

- ``verify(name)``: one check for one selected node. Checks for different
  nodes may overlap when triggered independently; the same node never has
  two checks in flight.
- ``verify_all()``: snapshot the selected nodes once, then check them one at
  a time in discovery order, waiting for each before starting the next. This
  keeps at most one outstanding call against the verification backend per
  batch. Nodes deselected after the snapshot are still checked.

A check that raises or times out counts as a failed verification with a
diagnostic; it never propagates. If the registry is discarded while a check
is in flight, the call is allowed to finish and its result is dropped.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from clusterdock.api.model import CandidateNode, NodeName, VerificationResult
from clusterdock.api.protocols import NodeVerifier
from clusterdock.callback import emit
from clusterdock.core.exceptions import NodeNotSelectedError
from clusterdock.events import (
    BatchVerificationCompleted,
    BatchVerificationStarted,
    NodeVerified,
    VerificationDiscarded,
    VerificationStarted,
)
from clusterdock.registry import NodeRegistry


class VerificationOrchestrator:
    def __init__(
        self,
        registry: NodeRegistry,
        verifier: NodeVerifier,
        *,
        timeout: float | None = None,
    ) -> None:
        self._registry = registry
        self._verifier = verifier
        self._timeout = timeout
        self._inflight: dict[NodeName, asyncio.Future[CandidateNode | None]] = {}
        self._log = logger.bind(component="orchestrator")

    @property
    def registry(self) -> NodeRegistry:
        return self._registry

    @property
    def in_flight(self) -> tuple[NodeName, ...]:
        return tuple(self._inflight)

    async def verify(self, name: NodeName) -> CandidateNode | None:
        """Verify a single selected node.

        Returns the updated record, or None when the batch was discarded
        while the check was running.

        Raises:
            NodeNotSelectedError: The node is deselected.
            VerificationInProgressError: A check for this node is in flight.
        """
        if not self._registry.get(name).selected:
            raise NodeNotSelectedError(name)
        return await self._run(name)

    async def verify_all(self) -> tuple[CandidateNode, ...]:
        """Verify every node selected at call time, strictly one after another."""
        snapshot = tuple(n.name for n in self._registry.selected())
        self._log.info("Verifying {n} selected nodes sequentially", n=len(snapshot))
        emit(BatchVerificationStarted(nodes=snapshot))

        results: list[CandidateNode] = []
        for name in snapshot:
            if self._registry.closed:
                self._log.info("Batch discarded, skipping remaining nodes")
                break
            if (pending := self._inflight.get(name)) is not None:
                self._log.debug("{node} already being verified, waiting for it", node=name)
                node = await asyncio.shield(pending)
            else:
                node = await self._run(name)
            if node is not None:
                results.append(node)

        passed = tuple(n.name for n in results if n.verification == "success")
        failed = tuple(n.name for n in results if n.verification == "failed")
        self._log.info(
            "Batch verification finished: {ok} passed, {bad} failed",
            ok=len(passed), bad=len(failed),
        )
        emit(BatchVerificationCompleted(passed=passed, failed=failed))
        return tuple(results)

    # ─── Per-node procedure ──────────────────────────────────────────

    async def _run(self, name: NodeName) -> CandidateNode | None:
        previous = self._registry.get(name).verification
        node = self._registry.begin_verification(name)
        done: asyncio.Future[CandidateNode | None] = asyncio.get_running_loop().create_future()
        self._inflight[name] = done

        updated: CandidateNode | None = None
        try:
            emit(VerificationStarted(node=name))
            result = await self._check(node)
            updated = self._apply(name, result)
            return updated
        except asyncio.CancelledError:
            updated = self._apply(
                name, VerificationResult(passed=False, message="Verification was cancelled"),
            )
            raise
        finally:
            self._inflight.pop(name, None)
            if not self._registry.closed and self._registry.get(name).verifying:
                self._registry.abort_verification(name, previous)
            done.set_result(updated)

    async def _check(self, node: CandidateNode) -> VerificationResult:
        try:
            async with asyncio.timeout(self._timeout):
                return await self._verifier.verify_node(node)
        except TimeoutError:
            self._log.warning("{node}: verification timed out", node=node.name)
            limit = f" after {self._timeout:g}s" if self._timeout is not None else ""
            return VerificationResult(passed=False, message=f"Verification timed out{limit}")
        except Exception as e:
            self._log.warning(
                "{node}: verification agent error: {err}", node=node.name, err=e,
            )
            return VerificationResult(
                passed=False,
                message=f"Verification agent error: {type(e).__name__}: {e}",
            )

    def _apply(self, name: NodeName, result: VerificationResult) -> CandidateNode | None:
        if self._registry.closed:
            self._log.info("{node}: batch discarded, dropping result", node=name)
            emit(VerificationDiscarded(node=name))
            return None

        updated = self._registry.complete_verification(name, result)
        log = self._log.info if result.passed else self._log.warning
        log(
            "{node}: {status} - {msg}",
            node=name, status=updated.verification, msg=result.message,
        )
        emit(NodeVerified(node=name, passed=result.passed, message=result.message))
        return updated
