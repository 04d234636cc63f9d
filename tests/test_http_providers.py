from __future__ import annotations

from dataclasses import replace

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from clusterdock.api.model import NodeArchitecture
from clusterdock.config import EndpointConfig, Settings
from clusterdock.core.exceptions import (
    CommitError,
    ConfigurationError,
    ConnectivityError,
    DiscoveryError,
)
from clusterdock.infra.http import HttpError, JsonClient
from clusterdock.providers import build_backends
from clusterdock.providers.http import (
    HttpClusterGateway,
    HttpNodeInventory,
    node_to_json,
    result_from_json,
)
from tests.conftest import CLUSTER, make_node

pytestmark = [pytest.mark.unit]

TOKEN = "gw-token"

CLUSTER_JSON = {
    "name": "gpu-prod",
    "control_plane_version": "v1.28.3",
    "api_endpoint": "https://10.0.0.1:6443",
    "provider": "Karmada",
    "reported_node_count": 3,
}


def make_app(state: dict) -> web.Application:
    app = web.Application()

    def authorized(request: web.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {TOKEN}"

    async def validate(request: web.Request) -> web.Response:
        if not authorized(request):
            return web.Response(status=401, text="unauthorized")
        body = await request.json()
        if body["credential"] != "good-kubeconfig":
            return web.Response(status=403, text="credential rejected")
        return web.json_response(CLUSTER_JSON)

    async def nodes(request: web.Request) -> web.Response:
        if request.match_info["cluster"] != "gpu-prod":
            return web.Response(status=404, text="no such cluster")
        return web.json_response({"nodes": [
            {
                "name": "gpu-node-1", "address": "10.0.1.1",
                "accelerator_model": "NVIDIA A100", "accelerator_count": 8,
                "cpu_cores": 128, "memory_gb": 512,
            },
            {
                "name": "gpu-node-2", "address": "10.0.1.2",
                "accelerator_model": "NVIDIA V100", "accelerator_count": 4,
                "cpu_cores": 64, "memory_gb": 256,
            },
        ]})

    async def verify(request: web.Request) -> web.Response:
        body = await request.json()
        state.setdefault("verified", []).append((request.match_info["node"], body["address"]))
        return web.json_response({
            "passed": True,
            "message": "driver ok",
            "architecture": {"driver_version": "535.129.03", "cuda_version": "12.2"},
        })

    async def commit(request: web.Request) -> web.Response:
        body = await request.json()
        state.setdefault("commits", []).append(body)
        if request.match_info["cluster"] == "locked":
            return web.Response(status=409, text="cluster locked")
        return web.json_response({"accepted": [n["name"] for n in body["nodes"]]})

    async def listing(request: web.Request) -> web.Response:
        state["list_calls"] = state.get("list_calls", 0) + 1
        cluster = request.match_info["cluster"]
        if cluster == "flaky" and state["list_calls"] == 1:
            return web.Response(status=503, text="try again")
        if cluster == "broken":
            return web.Response(status=500, text="boom")
        if cluster == "missing":
            return web.Response(status=404, text="unknown cluster")
        return web.json_response({"nodes": [
            {"name": "gpu-node-1", "address": "10.0.1.1"},
        ]})

    app.router.add_post("/v1/clusters/validate", validate)
    app.router.add_get("/v1/clusters/{cluster}/nodes", nodes)
    app.router.add_post("/v1/nodes/{node}/verify", verify)
    app.router.add_post("/v1/inventory/clusters/{cluster}/nodes", commit)
    app.router.add_get("/v1/inventory/clusters/{cluster}/nodes", listing)
    return app


@pytest.fixture
def state() -> dict:
    return {}


@pytest.fixture
async def server(state: dict):
    srv = TestServer(make_app(state))
    await srv.start_server()
    yield srv
    await srv.close()


@pytest.fixture
def base_url(server: TestServer) -> str:
    return f"http://{server.host}:{server.port}"


@pytest.fixture
async def http(base_url: str):
    async with JsonClient(base_url, token=TOKEN) as client:
        yield client


# ─── JsonClient ──────────────────────────────────────────────────────


def test_http_error_str_and_transient():
    assert str(HttpError(status=503, body="busy")) == "HTTP 503: busy"
    assert str(HttpError(404, "gone", "GET", "/v1/x")) == "HTTP 404 (GET /v1/x): gone"
    assert HttpError(status=503, body="").transient
    assert HttpError(status=0, body="connection refused").transient
    assert not HttpError(status=409, body="").transient


@pytest.mark.asyncio
async def test_missing_bearer_token_rejected(base_url: str):
    async with JsonClient(base_url) as client:
        with pytest.raises(HttpError) as exc_info:
            await client.post("/v1/clusters/validate", {"credential": "x"})
    assert exc_info.value.status == 401
    assert exc_info.value.path == "/v1/clusters/validate"


@pytest.mark.asyncio
async def test_unreachable_service_is_transient():
    async with JsonClient("http://127.0.0.1:9", timeout=2) as client:
        with pytest.raises(HttpError) as exc_info:
            await client.get("/v1/anything")
    assert exc_info.value.status == 0
    assert exc_info.value.transient


# ─── Gateway ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_validate_connectivity(http: JsonClient):
    cluster = await HttpClusterGateway(http).validate_connectivity("good-kubeconfig")
    assert cluster == CLUSTER


@pytest.mark.asyncio
async def test_rejected_credential_raises_connectivity_error(http: JsonClient):
    with pytest.raises(ConnectivityError, match="403"):
        await HttpClusterGateway(http).validate_connectivity("stolen-kubeconfig")


@pytest.mark.asyncio
async def test_discover_nodes(http: JsonClient):
    nodes = await HttpClusterGateway(http).discover_nodes(CLUSTER)

    assert [n.name for n in nodes] == ["gpu-node-1", "gpu-node-2"]
    assert nodes[1].accelerator_model == "NVIDIA V100"
    assert all(n.selected and n.verification == "pending" for n in nodes)


@pytest.mark.asyncio
async def test_discover_unknown_cluster_raises(http: JsonClient):
    with pytest.raises(DiscoveryError):
        await HttpClusterGateway(http).discover_nodes(replace(CLUSTER, name="elsewhere"))


@pytest.mark.asyncio
async def test_verify_node(http: JsonClient, state: dict):
    result = await HttpClusterGateway(http).verify_node(make_node("gpu-node-2"))

    assert result.passed
    assert result.message == "driver ok"
    assert result.architecture == NodeArchitecture(driver_version="535.129.03", cuda_version="12.2")
    assert state["verified"] == [("gpu-node-2", "10.0.1.2")]


def test_result_requires_boolean_verdict():
    with pytest.raises(ValueError):
        result_from_json({"passed": "yes", "message": "?"})


# ─── Inventory ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_commit_nodes(http: JsonClient, state: dict):
    node = replace(
        make_node("gpu-node-1"), verification="success", message="ok",
        report=NodeArchitecture(driver_version="535.129.03"),
    )
    ack = await HttpNodeInventory(http).commit_nodes(CLUSTER, [node])

    assert ack.cluster == "gpu-prod"
    assert ack.accepted == ("gpu-node-1",)
    sent = state["commits"][0]
    assert sent["cluster"]["name"] == "gpu-prod"
    assert sent["nodes"] == [node_to_json(node)]
    assert sent["nodes"][0]["architecture"]["driver_version"] == "535.129.03"


@pytest.mark.asyncio
async def test_rejected_commit_raises_commit_error(http: JsonClient):
    node = replace(make_node("gpu-node-1"), verification="success")
    with pytest.raises(CommitError, match="409"):
        await HttpNodeInventory(http).commit_nodes(replace(CLUSTER, name="locked"), [node])


@pytest.mark.asyncio
async def test_list_nodes_retries_transient_errors(http: JsonClient, state: dict):
    nodes = await HttpNodeInventory(http, retry_wait=0).list_nodes("flaky")

    assert [n.name for n in nodes] == ["gpu-node-1"]
    assert state["list_calls"] == 2


@pytest.mark.asyncio
async def test_list_nodes_gives_up_after_attempts(http: JsonClient, state: dict):
    with pytest.raises(HttpError) as exc_info:
        await HttpNodeInventory(http, list_attempts=2, retry_wait=0).list_nodes("broken")

    assert exc_info.value.status == 500
    assert state["list_calls"] == 2


@pytest.mark.asyncio
async def test_list_nodes_unknown_cluster_is_empty(http: JsonClient, state: dict):
    assert await HttpNodeInventory(http, retry_wait=0).list_nodes("missing") == ()
    assert state["list_calls"] == 1


# ─── build_backends ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_build_backends(base_url: str):
    settings = Settings(
        gateway=EndpointConfig(url=base_url, token=TOKEN),
        inventory=EndpointConfig(url=base_url, timeout=5),
    )
    backends = build_backends(settings)
    try:
        cluster = await backends.gateway.validate_connectivity("good-kubeconfig")
        assert cluster.name == "gpu-prod"
        assert len(await backends.inventory.list_nodes("gpu-prod")) == 1
    finally:
        await backends.close()


def test_build_backends_requires_sections():
    with pytest.raises(ConfigurationError, match="gateway"):
        build_backends(Settings())
    with pytest.raises(ConfigurationError, match="inventory"):
        build_backends(Settings(gateway=EndpointConfig(url="http://localhost")))
