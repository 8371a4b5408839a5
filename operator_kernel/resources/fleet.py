"""
Compute fleet handler — rolling master updates and incremental worker scaling.

Masters are rolled one instance per pass through the WorkingSet guard:
apply the latest model, drain, reimage once drained. Workers are scaled one
instance per pass by the scale strategy, and only while no master instance is
being worked on.

Behavioral Contract:
- At most one master instance is mutated per pass
- An instance already being updated by the provider defers the whole pass;
  the next pass picks up from fresh state
- A fleet without tracked instance versions is treated as idle
- Provider calls of this handler share the compute Gatekeeper
"""

import logging
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from operator_kernel.convergence.contract import Observation, ResourceHandler
from operator_kernel.guard.working_set import (
    VersionBlobEmptyError,
    WorkingSet,
    get_working_set,
    instance_already_being_updated,
    instance_to_drain,
    instance_to_reimage,
    instance_to_update,
    is_wip,
    next_instance,
)
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.compute import FleetDesired, FleetObservation, ScaleSetInstance
from operator_kernel.models.patch import Patch
from operator_kernel.provider.client import DrainerClient, NotFoundError, ScaleSetClient
from operator_kernel.scaling.strategy import IncrementalScaleStrategy, ScaleStrategy, scale_fleet
from operator_kernel.throttling.gatekeeper import Gatekeeper

logger = logging.getLogger(__name__)

# cluster_id → {node name: version running on it}, None while nothing is tracked
VersionSource = Callable[[str], Optional[Dict[str, str]]]


def _name_of(cluster: ClusterSpec) -> Callable[[str], str]:
    def name_of(instance_id: str) -> str:
        return cluster.instance_name(cluster.master_fleet_name, instance_id)
    return name_of


class FleetChange(BaseModel):
    """The single fleet mutation a pass will issue."""

    working_set: Optional[WorkingSet] = None
    worker_capacity: Optional[int] = None

    def is_empty(self) -> bool:
        return not is_wip(self.working_set) and self.worker_capacity is None


class FleetHandler(ResourceHandler):
    name = "fleet"

    def __init__(
        self,
        scale_sets: ScaleSetClient,
        drainer: DrainerClient,
        versions: VersionSource,
        strategy: Optional[ScaleStrategy] = None,
        gatekeeper: Optional[Gatekeeper] = None,
    ):
        super().__init__(gatekeeper=gatekeeper)
        self.scale_sets = scale_sets
        self.drainer = drainer
        self.versions = versions
        self.strategy = strategy or IncrementalScaleStrategy()

    def get_current_state(self, cluster: ClusterSpec) -> Observation:
        # Fleets go away with the resource group; nothing to roll or scale
        if cluster.deleted:
            return Observation.observed(FleetObservation())

        rg = cluster.resource_group

        try:
            masters = self.scale_sets.list_instances(rg, cluster.master_fleet_name)
            workers = self.scale_sets.get(rg, cluster.worker_fleet_name)
        except NotFoundError as e:
            logger.debug("scale set not found: %s", e)
            logger.debug("canceling resource")
            return Observation.deferred(f"scale set not found: {e}")

        observation = FleetObservation(
            master_instances=masters,
            drained_instances=self.drainer.list_drained(cluster.cluster_id),
            instance_versions=self.versions(cluster.cluster_id),
            worker_capacity=workers.capacity,
        )

        instance = self._already_being_updated(cluster, observation)
        if instance is not None:
            logger.debug("instance %s is already being updated", instance.instance_id)
            logger.debug("canceling resource")
            return Observation.deferred(f"instance {instance.instance_id} is already being updated")

        return Observation.observed(observation)

    def _already_being_updated(
        self, cluster: ClusterSpec, observation: FleetObservation
    ) -> Optional[ScaleSetInstance]:
        try:
            ws = get_working_set(
                observation.master_instances,
                observation.drained_instances,
                observation.instance_versions,
                cluster.operator_version,
                _name_of(cluster),
            )
        except VersionBlobEmptyError:
            return None
        return instance_already_being_updated(ws)

    def get_desired_state(self, cluster: ClusterSpec) -> Observation:
        return Observation.observed(FleetDesired(
            version=cluster.operator_version,
            worker_capacity=cluster.worker_count,
        ))

    def new_update_patch(
        self, cluster: ClusterSpec, current: FleetObservation, desired: FleetDesired
    ) -> Patch:
        ws = next_instance(
            current.master_instances,
            current.drained_instances,
            current.instance_versions,
            desired.version,
            _name_of(cluster),
        )
        if is_wip(ws):
            return Patch(update_change=FleetChange(working_set=ws))

        target = self.strategy.get_node_count(current.worker_capacity, desired.worker_capacity)
        if target != current.worker_capacity:
            return Patch(update_change=FleetChange(worker_capacity=desired.worker_capacity))

        return Patch()

    def apply_update_change(self, cluster: ClusterSpec, change: FleetChange) -> None:
        if change is None or change.is_empty():
            return

        if is_wip(change.working_set):
            self._apply_working_set(cluster, change.working_set)
            return

        scale_fleet(
            self.scale_sets,
            cluster.resource_group,
            cluster.worker_fleet_name,
            change.worker_capacity,
            self.strategy,
        )

    def _apply_working_set(self, cluster: ClusterSpec, ws: WorkingSet) -> None:
        rg = cluster.resource_group
        fleet = cluster.master_fleet_name

        instance = instance_to_update(ws)
        if instance is not None:
            logger.debug("ensuring instance %s has the latest model", instance.instance_id)
            self.scale_sets.update_instances(rg, fleet, [instance.instance_id]).result()
            logger.debug("ensured instance %s has the latest model", instance.instance_id)
            return

        instance = instance_to_drain(ws)
        if instance is not None:
            name = cluster.instance_name(fleet, instance.instance_id)
            logger.debug("requesting drain of node %s", name)
            self.drainer.request_drain(cluster.cluster_id, name)
            return

        instance = instance_to_reimage(ws)
        if instance is not None:
            name = cluster.instance_name(fleet, instance.instance_id)
            logger.debug("ensuring instance %s is reimaged", instance.instance_id)
            self.scale_sets.reimage(rg, fleet, [instance.instance_id]).result()
            logger.debug("ensured instance %s is reimaged", instance.instance_id)
            try:
                self.drainer.delete(cluster.cluster_id, name)
            except NotFoundError:
                logger.debug("drain request for node %s already removed", name)
