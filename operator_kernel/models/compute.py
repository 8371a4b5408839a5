"""Compute fleet state — scale sets and their instances."""

from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from operator_kernel.models.network import is_final_provisioning_state


class ScaleSetInstance(BaseModel):
    """A single instance of a compute fleet (scale set VM)."""

    instance_id: str
    provisioning_state: Optional[str] = None
    latest_model_applied: bool = True

    def in_progress(self) -> bool:
        """True while the provider is still working on this instance."""
        if self.provisioning_state is None:
            return False
        return not is_final_provisioning_state(self.provisioning_state)


class ScaleSet(BaseModel):
    """A named group of homogeneous compute instances."""

    name: str
    capacity: int = Field(ge=0, default=0)
    provisioning_state: Optional[str] = "Succeeded"


class FleetObservation(BaseModel):
    """Observed state of a cluster's compute fleets, snapshotted once per pass."""

    master_instances: List[ScaleSetInstance] = []
    drained_instances: Set[str] = set()
    # None when no per-instance versions are tracked yet (freshly created cluster)
    instance_versions: Optional[Dict[str, str]] = None
    worker_capacity: int = 0


class FleetDesired(BaseModel):
    """Desired state of a cluster's compute fleets."""

    version: str
    worker_capacity: int = Field(ge=0)
