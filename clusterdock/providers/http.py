"""HTTP adapters for the cluster gateway and the node inventory service.

Gateway endpoints::

    POST /v1/clusters/validate              {"credential": "..."}  → cluster
    GET  /v1/clusters/{cluster}/nodes                              → {"nodes": [...]}
    POST /v1/nodes/{node}/verify            {"address": "..."}     → result

Inventory endpoints::

    POST /v1/inventory/clusters/{cluster}/nodes  {"cluster": ..., "nodes": [...]}
    GET  /v1/inventory/clusters/{cluster}/nodes                    → {"nodes": [...]}

Contract calls (validate, discover, verify, commit) are made exactly once per
request; only the read-only inventory listing is retried on transient errors.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict
from typing import Any
from urllib.parse import quote

from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from clusterdock.api.model import (
    CandidateNode,
    ClusterMetadata,
    CommitAck,
    Credential,
    NodeArchitecture,
    VerificationResult,
)
from clusterdock.core.exceptions import CommitError, ConnectivityError, DiscoveryError
from clusterdock.infra.http import HttpError, JsonClient

_NODE_FIELDS = (
    "name", "address", "accelerator_model", "accelerator_count", "cpu_cores", "memory_gb",
)


def _path(segment: str) -> str:
    return quote(segment, safe="")


def cluster_from_json(data: dict[str, Any]) -> ClusterMetadata:
    return ClusterMetadata(
        name=str(data["name"]),
        control_plane_version=str(data["control_plane_version"]),
        api_endpoint=str(data["api_endpoint"]),
        provider=str(data.get("provider", "")),
        reported_node_count=int(data.get("reported_node_count", 0)),
    )


def node_from_json(data: dict[str, Any]) -> CandidateNode:
    return CandidateNode(
        name=str(data["name"]),
        address=str(data["address"]),
        accelerator_model=str(data.get("accelerator_model", "")),
        accelerator_count=int(data.get("accelerator_count", 0)),
        cpu_cores=int(data.get("cpu_cores", 0)),
        memory_gb=int(data.get("memory_gb", 0)),
    )


def node_to_json(node: CandidateNode) -> dict[str, Any]:
    payload: dict[str, Any] = {f: getattr(node, f) for f in _NODE_FIELDS}
    payload["verification"] = node.verification
    payload["message"] = node.message
    payload["architecture"] = asdict(node.report) if node.report else None
    return payload


def result_from_json(data: dict[str, Any]) -> VerificationResult:
    passed = data["passed"]
    if not isinstance(passed, bool):
        raise ValueError(f"'passed' must be a boolean, got {passed!r}")
    arch = data.get("architecture")
    return VerificationResult(
        passed=passed,
        message=str(data.get("message", "")),
        architecture=NodeArchitecture(**arch) if arch else None,
    )


class HttpClusterGateway:
    """Reaches remote clusters and their node agents through one gateway."""

    def __init__(self, http: JsonClient) -> None:
        self._http = http
        self._log = logger.bind(component="gateway")

    async def validate_connectivity(self, credential: Credential) -> ClusterMetadata:
        try:
            data = await self._http.post("/v1/clusters/validate", {"credential": credential})
            return cluster_from_json(data)
        except HttpError as e:
            raise ConnectivityError(f"Gateway rejected credential: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise ConnectivityError(f"Malformed cluster payload: {e!r}") from e

    async def discover_nodes(self, cluster: ClusterMetadata) -> Sequence[CandidateNode]:
        try:
            data = await self._http.get(f"/v1/clusters/{_path(cluster.name)}/nodes")
            nodes = tuple(node_from_json(n) for n in data["nodes"])
        except HttpError as e:
            raise DiscoveryError(f"Node listing failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise DiscoveryError(f"Malformed node payload: {e!r}") from e
        self._log.debug("{cluster}: {n} nodes listed", cluster=cluster.name, n=len(nodes))
        return nodes

    async def verify_node(self, node: CandidateNode) -> VerificationResult:
        data = await self._http.post(
            f"/v1/nodes/{_path(node.name)}/verify", {"address": node.address},
        )
        return result_from_json(data)


class HttpNodeInventory:
    """Node inventory service client."""

    def __init__(
        self,
        http: JsonClient,
        *,
        list_attempts: int = 3,
        retry_wait: float = 1.0,
    ) -> None:
        self._http = http
        self._list_attempts = list_attempts
        self._retry_wait = retry_wait
        self._log = logger.bind(component="inventory")

    async def commit_nodes(
        self, cluster: ClusterMetadata, nodes: Sequence[CandidateNode],
    ) -> CommitAck:
        try:
            data = await self._http.post(
                f"/v1/inventory/clusters/{_path(cluster.name)}/nodes",
                {"cluster": asdict(cluster), "nodes": [node_to_json(n) for n in nodes]},
            )
            accepted = tuple(str(n) for n in data["accepted"])
        except HttpError as e:
            raise CommitError(f"Inventory rejected commit: {e}") from e
        except (KeyError, TypeError) as e:
            raise CommitError(f"Malformed commit acknowledgement: {e!r}") from e
        return CommitAck(cluster=cluster.name, accepted=accepted)

    async def list_nodes(self, cluster_name: str) -> Sequence[CandidateNode]:
        path = f"/v1/inventory/clusters/{_path(cluster_name)}/nodes"
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._list_attempts),
            wait=wait_fixed(self._retry_wait),
            retry=retry_if_exception(lambda e: isinstance(e, HttpError) and e.transient),
            reraise=True,
        ):
            with attempt:
                try:
                    data = await self._http.get(path)
                except HttpError as e:
                    if e.status == 404:
                        return ()
                    if e.transient:
                        self._log.warning(
                            "Inventory listing failed (attempt {n}): {err}",
                            n=attempt.retry_state.attempt_number, err=e,
                        )
                    raise
                return tuple(node_from_json(n) for n in data["nodes"])
        raise AssertionError("unreachable")
