"""Tests for the cluster inventory and the in-memory provider clients."""

from datetime import datetime

import pytest

from operator_kernel.inventory.store import ClusterInventory
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.compute import ScaleSet
from operator_kernel.models.network import GatewayReference
from operator_kernel.provider.client import NotFoundError, ProviderError, ThrottledError
from operator_kernel.provider.memory import (
    InMemoryDrainerClient,
    InMemoryResourceClient,
    InMemoryScaleSetClient,
)


def _make_cluster(cluster_id: str = "c1", **overrides) -> ClusterSpec:
    return ClusterSpec(cluster_id=cluster_id, operator_version="1.0.0", **overrides)


class TestClusterInventory:
    def setup_method(self):
        self.inventory = ClusterInventory()

    def test_upsert_keeps_created_at(self):
        first = self.inventory.upsert(_make_cluster())
        second = self.inventory.upsert(_make_cluster(worker_count=7))
        assert first.created_at is not None
        assert second.created_at == first.created_at
        assert self.inventory.get("c1").worker_count == 7

    def test_list_ordered_by_id(self):
        for cluster_id in ("b", "c", "a"):
            self.inventory.upsert(_make_cluster(cluster_id))
        assert [c.cluster_id for c in self.inventory.list()] == ["a", "b", "c"]
        assert len(self.inventory) == 3

    def test_mark_deleted(self):
        self.inventory.upsert(_make_cluster())
        assert self.inventory.mark_deleted("c1").deleted is True
        assert self.inventory.get("c1").deleted is True
        assert self.inventory.mark_deleted("nope") is None

    def test_remove(self):
        self.inventory.upsert(_make_cluster())
        assert self.inventory.remove("c1") is True
        assert self.inventory.remove("c1") is False
        assert self.inventory.get("c1") is None


class TestInMemoryResourceClient:
    def setup_method(self):
        self.client = InMemoryResourceClient()

    def test_get_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            self.client.get("rg", "gw")

    def test_create_settles_provisioning_state(self):
        gateway = GatewayReference(id="/gw", name="gw", provisioning_state="Updating")
        result = self.client.create_or_update("rg", "gw", gateway).result()
        assert result.provisioning_state == "Succeeded"
        assert self.client.get("rg", "gw").provisioning_state == "Succeeded"
        assert self.client.calls == [("create_or_update", "rg", "gw")]

    def test_put_records_no_call(self):
        self.client.put("rg", "gw", GatewayReference(id="/gw", name="gw"))
        assert self.client.calls == []

    def test_delete_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            self.client.delete("rg", "gw").result()
        assert self.client.mutating_calls("delete") == [("delete", "rg", "gw")]

    def test_injected_failure_fires_once(self):
        self.client.fail_next("get", ProviderError("boom"))
        with pytest.raises(ProviderError):
            self.client.get("rg", "gw")
        with pytest.raises(NotFoundError):
            self.client.get("rg", "gw")

    def test_injected_throttle_carries_retry_after(self):
        self.client.throttle_next("create_or_update", retry_after=None)
        with pytest.raises(ThrottledError) as exc_info:
            self.client.create_or_update("rg", "gw", GatewayReference(id="/gw", name="gw"))
        assert exc_info.value.retry_after is None

    def test_injected_throttle_reads_retry_after_header(self):
        self.client.throttle_next("get", headers={"Retry-After": "Mon, 01 Jan 2024 12:10:00 GMT"})
        with pytest.raises(ThrottledError) as exc_info:
            self.client.get("rg", "gw")
        assert exc_info.value.retry_after == datetime(2024, 1, 1, 12, 10, 0)


class TestInMemoryScaleSetClient:
    def test_missing_scale_set(self):
        client = InMemoryScaleSetClient()
        with pytest.raises(NotFoundError):
            client.list_instances("rg", "fleet")

    def test_capacity_update(self):
        client = InMemoryScaleSetClient()
        client.put("rg", ScaleSet(name="fleet", capacity=1))
        client.create_or_update("rg", "fleet", ScaleSet(name="fleet", capacity=2)).result()
        assert client.get("rg", "fleet").capacity == 2
        assert client.calls == [("create_or_update", "rg", "fleet", "2")]


class TestInMemoryDrainerClient:
    def test_drain_lifecycle(self):
        drainer = InMemoryDrainerClient()
        drainer.request_drain("c1", "c1-master-0")
        assert drainer.list_drained("c1") == set()

        drainer.complete_drain("c1", "c1-master-0")
        assert drainer.list_drained("c1") == {"c1-master-0"}

        drainer.delete("c1", "c1-master-0")
        assert drainer.list_drained("c1") == set()
        with pytest.raises(NotFoundError):
            drainer.delete("c1", "c1-master-0")
