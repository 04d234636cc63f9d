from __future__ import annotations

from dataclasses import replace

import pytest

from clusterdock.callback import use_callback
from clusterdock.callbacks import EventHistory
from clusterdock.core.exceptions import (
    ClusterNotManagedError,
    DiscoveryError,
    SyncStateError,
)
from clusterdock.events import SyncStarted
from clusterdock.sync import SyncController
from tests.conftest import CLUSTER, NODES, FakeCluster, RecordingInventory, make_node

pytestmark = [pytest.mark.unit]


async def _onboarded(inventory: RecordingInventory) -> None:
    await inventory.commit_nodes(CLUSTER, [replace(n, verification="success") for n in NODES])
    inventory.commits.clear()


def _sync(fake: FakeCluster, inventory: RecordingInventory) -> SyncController:
    return SyncController(CLUSTER, fake, fake, inventory)


@pytest.fixture
def grown_cluster(fake_cluster: FakeCluster) -> FakeCluster:
    fake_cluster.nodes = (*NODES, make_node("gpu-node-4"), make_node("gpu-node-5"))
    return fake_cluster


class TestDiscover:
    @pytest.mark.asyncio
    async def test_only_new_nodes_offered(
        self, grown_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        history = EventHistory()

        with use_callback(history):
            batch = await _sync(grown_cluster, inventory).discover()

        assert batch.nodes.names() == ("gpu-node-4", "gpu-node-5")
        assert batch.known == frozenset({"gpu-node-1", "gpu-node-2", "gpu-node-3"})
        assert batch.error is None
        assert history.events(SyncStarted) == (SyncStarted(cluster="gpu-prod", known_nodes=3),)

    @pytest.mark.asyncio
    async def test_unmanaged_cluster_rejected(
        self, fake_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        with pytest.raises(ClusterNotManagedError):
            await _sync(fake_cluster, inventory).discover()
        assert fake_cluster.discover_calls == 0

    @pytest.mark.asyncio
    async def test_discovery_failure_recorded(
        self, fake_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        fake_cluster.discovery_error = DiscoveryError("gateway unavailable")
        sync = _sync(fake_cluster, inventory)

        batch = await sync.discover()

        assert len(batch.nodes) == 0
        assert batch.error == "DiscoveryError: gateway unavailable"
        assert sync.committable() == ()

    @pytest.mark.asyncio
    async def test_rediscover_replaces_batch(
        self, grown_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        sync = _sync(grown_cluster, inventory)

        first = await sync.discover()
        second = await sync.discover()

        assert first.nodes.closed
        assert sync.batch is second

    @pytest.mark.asyncio
    async def test_no_node_records_shared_with_inventory(
        self, fake_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        fake_cluster.nodes = (
            *(replace(n, verification="success") for n in NODES), make_node("gpu-node-4"),
        )
        batch = await _sync(fake_cluster, inventory).discover()

        node = batch.nodes.get("gpu-node-4")
        assert node.verification == "pending"
        assert node not in await inventory.list_nodes("gpu-prod")


class TestConfirm:
    @pytest.mark.asyncio
    async def test_new_nodes_committed(
        self, grown_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        sync = _sync(grown_cluster, inventory)
        await sync.discover()
        await sync.verify_all()

        ack = await sync.confirm()

        assert ack is not None
        assert ack.accepted == ("gpu-node-4", "gpu-node-5")
        assert grown_cluster.verify_calls == ["gpu-node-4", "gpu-node-5"]
        assert sync.batch is None
        stored = await inventory.list_nodes("gpu-prod")
        assert [n.name for n in stored] == [f"gpu-node-{i}" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_confirm_requires_verified_selection(
        self, grown_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        sync = _sync(grown_cluster, inventory)
        await sync.discover()

        with pytest.raises(SyncStateError):
            await sync.confirm()

        await sync.verify_node("gpu-node-4")
        sync.toggle_selection("gpu-node-4")
        with pytest.raises(SyncStateError):
            await sync.confirm()
        assert inventory.commits == []

    @pytest.mark.asyncio
    async def test_confirm_failure_keeps_batch(
        self, grown_cluster: FakeCluster,
    ) -> None:
        inventory = RecordingInventory()
        await _onboarded(inventory)
        inventory.fail_commits = 1
        sync = _sync(grown_cluster, inventory)
        await sync.discover()
        await sync.verify_all()

        assert await sync.confirm() is None
        assert sync.batch is not None
        assert sync.batch.error == "CommitError: inventory unavailable"

        ack = await sync.confirm()
        assert ack is not None
        assert sync.batch is None
        assert len(grown_cluster.verify_calls) == 2

    @pytest.mark.asyncio
    async def test_actions_require_batch(
        self, fake_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        sync = _sync(fake_cluster, inventory)

        with pytest.raises(SyncStateError):
            await sync.verify_all()
        with pytest.raises(SyncStateError):
            sync.toggle_selection("gpu-node-1")
        with pytest.raises(SyncStateError):
            await sync.confirm()

    @pytest.mark.asyncio
    async def test_cancel_discards_batch(
        self, grown_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        sync = _sync(grown_cluster, inventory)
        batch = await sync.discover()

        sync.cancel()

        assert sync.batch is None
        assert batch.nodes.closed

    @pytest.mark.asyncio
    async def test_failed_lookup_keeps_verified_batch(
        self, grown_cluster: FakeCluster, inventory: RecordingInventory,
    ) -> None:
        await _onboarded(inventory)
        sync = _sync(grown_cluster, inventory)
        batch = await sync.discover()
        await sync.verify_all()
        inventory.fail_lookups = 1

        with pytest.raises(ConnectionError):
            await sync.discover()

        assert sync.batch is batch
        assert not batch.nodes.closed
        assert [n.name for n in sync.committable()] == ["gpu-node-4", "gpu-node-5"]
        assert grown_cluster.discover_calls == 1
