"""Cluster specification — the declared desired state handed to every reconcile pass."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ClusterSpec(BaseModel):
    """A tenant cluster managed by the operator."""

    cluster_id: str
    location: str = "westeurope"
    operator_version: str                   # Desired version tracked per instance
    master_count: int = Field(ge=0, default=1)
    worker_count: int = Field(ge=0, default=3)
    dns_zone_name_servers: list = []        # NS records delegated from the host zone
    deleted: bool = False                   # Set when teardown was requested
    created_at: Optional[datetime] = None

    @property
    def resource_group(self) -> str:
        return self.cluster_id

    @property
    def vpn_gateway_name(self) -> str:
        return f"{self.cluster_id}-vpn-gateway"

    @property
    def master_fleet_name(self) -> str:
        return f"{self.cluster_id}-master"

    @property
    def worker_fleet_name(self) -> str:
        return f"{self.cluster_id}-worker"

    @property
    def storage_account_name(self) -> str:
        return f"{self.cluster_id.replace('-', '')}sa"

    def instance_name(self, fleet_name: str, instance_id: str) -> str:
        """Node name of a scale set instance, e.g. 'abc12-master-3'."""
        return f"{fleet_name}-{instance_id}"
