"""
In-memory provider clients.

Stand in for the cloud provider when running the kernel locally and in
tests. Every mutating call is recorded in `calls` so callers can assert
exactly which provider call sites fired. Failures are injected per
operation name with fail_next / throttle_next.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from operator_kernel.models.compute import ScaleSet, ScaleSetInstance
from operator_kernel.models.network import ProvisioningState
from operator_kernel.models.storage import ContainerObject
from operator_kernel.provider.client import (
    LongRunningOperation,
    NotFoundError,
    ProviderError,
    ThrottledError,
)
from operator_kernel.throttling.retry_after import HeaderValue


class _FaultInjector:
    """Shared failure injection for the in-memory clients."""

    def __init__(self):
        self.calls: List[Tuple[str, ...]] = []
        self._failures: Dict[str, Exception] = {}

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """Make the next call of `operation` raise `error`."""
        self._failures[operation] = error or ProviderError(f"injected failure in {operation}")

    def throttle_next(
        self,
        operation: str,
        retry_after: Optional[datetime] = None,
        headers: Optional[Mapping[str, HeaderValue]] = None,
    ) -> None:
        """
        Make the next call of `operation` raise a ThrottledError. With
        `headers`, the retry time comes from their Retry-After value the way a
        real throttled response is read.
        """
        message = f"too many requests for {operation}"
        if headers is not None:
            self._failures[operation] = ThrottledError.from_headers(message, headers)
        else:
            self._failures[operation] = ThrottledError(message, retry_after=retry_after)

    def _check(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    def mutating_calls(self, operation: Optional[str] = None) -> List[Tuple[str, ...]]:
        if operation is None:
            return list(self.calls)
        return [c for c in self.calls if c[0] == operation]


class InMemoryResourceClient(_FaultInjector):
    """
    Generic CRUD client keyed by (resource_group, name).

    Stored descriptors are pydantic models. create_or_update stores a copy
    whose provisioning_state settles to Succeeded, unless `settle_state` says
    otherwise, which lets tests hold a resource in a non-final state.
    """

    def __init__(self, settle_state: str = ProvisioningState.SUCCEEDED.value):
        super().__init__()
        self.items: Dict[Tuple[str, str], Any] = {}
        self.settle_state = settle_state

    def put(self, resource_group: str, name: str, descriptor: Any) -> None:
        """Seed the store without recording a call."""
        self.items[(resource_group, name)] = descriptor

    def get(self, resource_group: str, name: str) -> Any:
        self._check("get")
        item = self.items.get((resource_group, name))
        if item is None:
            raise NotFoundError(f"{resource_group}/{name} not found")
        return item.model_copy(deep=True)

    def create_or_update(
        self, resource_group: str, name: str, descriptor: Any
    ) -> LongRunningOperation:
        self._check("create_or_update")
        self.calls.append(("create_or_update", resource_group, name))

        def wait():
            stored = descriptor.model_copy(deep=True)
            if "provisioning_state" in type(stored).model_fields:
                stored.provisioning_state = self.settle_state
            self.items[(resource_group, name)] = stored
            return stored.model_copy(deep=True)

        return LongRunningOperation(wait)

    def delete(self, resource_group: str, name: str) -> LongRunningOperation:
        self._check("delete")
        self.calls.append(("delete", resource_group, name))
        if (resource_group, name) not in self.items:
            raise NotFoundError(f"{resource_group}/{name} not found")

        def wait():
            self.items.pop((resource_group, name), None)

        return LongRunningOperation(wait)


class InMemoryScaleSetClient(_FaultInjector):
    """Compute fleets with their instances."""

    def __init__(self):
        super().__init__()
        self.scale_sets: Dict[Tuple[str, str], ScaleSet] = {}
        self.instances: Dict[Tuple[str, str], List[ScaleSetInstance]] = {}

    def put(
        self,
        resource_group: str,
        scale_set: ScaleSet,
        instances: Optional[List[ScaleSetInstance]] = None,
    ) -> None:
        key = (resource_group, scale_set.name)
        self.scale_sets[key] = scale_set
        self.instances[key] = list(instances or [])

    def get(self, resource_group: str, name: str) -> ScaleSet:
        self._check("get")
        scale_set = self.scale_sets.get((resource_group, name))
        if scale_set is None:
            raise NotFoundError(f"scale set {resource_group}/{name} not found")
        return scale_set.model_copy(deep=True)

    def list_instances(self, resource_group: str, name: str) -> List[ScaleSetInstance]:
        self._check("list_instances")
        if (resource_group, name) not in self.scale_sets:
            raise NotFoundError(f"scale set {resource_group}/{name} not found")
        return [i.model_copy(deep=True) for i in self.instances[(resource_group, name)]]

    def create_or_update(
        self, resource_group: str, name: str, scale_set: ScaleSet
    ) -> LongRunningOperation:
        self._check("create_or_update")
        self.calls.append(("create_or_update", resource_group, name, str(scale_set.capacity)))

        def wait():
            self.scale_sets[(resource_group, name)] = scale_set.model_copy(deep=True)
            self.instances.setdefault((resource_group, name), [])
            return scale_set

        return LongRunningOperation(wait)

    def update_instances(
        self, resource_group: str, name: str, instance_ids: List[str]
    ) -> LongRunningOperation:
        self._check("update_instances")
        self.calls.append(("update_instances", resource_group, name, *instance_ids))

        def wait():
            for instance in self.instances.get((resource_group, name), []):
                if instance.instance_id in instance_ids:
                    instance.latest_model_applied = True

        return LongRunningOperation(wait)

    def reimage(
        self, resource_group: str, name: str, instance_ids: List[str]
    ) -> LongRunningOperation:
        self._check("reimage")
        self.calls.append(("reimage", resource_group, name, *instance_ids))
        return LongRunningOperation()


class InMemoryBlobClient(_FaultInjector):
    """Storage containers holding named objects."""

    def __init__(self):
        super().__init__()
        self.containers: Dict[Tuple[str, str, str], Dict[str, ContainerObject]] = {}

    def create_container(self, resource_group: str, account_name: str, container_name: str) -> None:
        self.containers.setdefault((resource_group, account_name, container_name), {})

    def container_exists(self, resource_group: str, account_name: str, container_name: str) -> bool:
        self._check("container_exists")
        return (resource_group, account_name, container_name) in self.containers

    def list_objects(
        self, resource_group: str, account_name: str, container_name: str
    ) -> Dict[str, ContainerObject]:
        self._check("list_objects")
        container = self.containers.get((resource_group, account_name, container_name))
        if container is None:
            raise NotFoundError(f"container {account_name}/{container_name} not found")
        return {k: v.model_copy() for k, v in container.items()}

    def put_object(self, resource_group: str, obj: ContainerObject) -> LongRunningOperation:
        self._check("put_object")
        self.calls.append(("put_object", resource_group, obj.key))
        container = self.containers.get(
            (resource_group, obj.storage_account_name, obj.container_name)
        )
        if container is None:
            raise NotFoundError(f"container {obj.storage_account_name}/{obj.container_name} not found")
        container[obj.key] = obj.model_copy()
        return LongRunningOperation(value=obj)


class InMemoryDrainerClient(_FaultInjector):
    """Drain requests; `complete_drain` plays the part of the node drainer."""

    def __init__(self):
        super().__init__()
        self.requested: Dict[str, Set[str]] = {}
        self.drained: Dict[str, Set[str]] = {}

    def complete_drain(self, cluster_id: str, instance_name: str) -> None:
        self.drained.setdefault(cluster_id, set()).add(instance_name)

    def list_drained(self, cluster_id: str) -> Set[str]:
        self._check("list_drained")
        return set(self.drained.get(cluster_id, set()))

    def request_drain(self, cluster_id: str, instance_name: str) -> None:
        self._check("request_drain")
        self.calls.append(("request_drain", cluster_id, instance_name))
        self.requested.setdefault(cluster_id, set()).add(instance_name)

    def delete(self, cluster_id: str, instance_name: str) -> None:
        self._check("delete")
        self.calls.append(("delete", cluster_id, instance_name))
        if instance_name not in self.requested.get(cluster_id, set()):
            raise NotFoundError(f"drain request for {instance_name} not found")
        self.requested[cluster_id].discard(instance_name)
        self.drained.get(cluster_id, set()).discard(instance_name)


class InMemoryProvider:
    """All in-memory clients of one provider account."""

    def __init__(self):
        self.host_gateways = InMemoryResourceClient()
        self.host_connections = InMemoryResourceClient()
        self.guest_gateways = InMemoryResourceClient()
        self.guest_connections = InMemoryResourceClient()
        self.dns_records = InMemoryResourceClient()
        self.scale_sets = InMemoryScaleSetClient()
        self.blobs = InMemoryBlobClient()
        self.drainer = InMemoryDrainerClient()
