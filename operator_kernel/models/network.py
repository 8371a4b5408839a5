"""Network state — gateways, gateway connections and DNS delegation records."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class ProvisioningState(str, Enum):
    """Provider-reported status of an async create/update operation."""
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"
    CREATING = "Creating"
    UPDATING = "Updating"
    DELETING = "Deleting"


class ConnectionType(str, Enum):
    VNET2VNET = "Vnet2Vnet"
    IPSEC = "IPsec"
    EXPRESS_ROUTE = "ExpressRoute"


class ConnectionStatus(str, Enum):
    UNKNOWN = "Unknown"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    NOT_CONNECTED = "NotConnected"


def is_succeeded_provisioning_state(state: Optional[str]) -> bool:
    return state == ProvisioningState.SUCCEEDED.value


def is_failed_provisioning_state(state: Optional[str]) -> bool:
    return state in (ProvisioningState.FAILED.value, ProvisioningState.CANCELED.value)


def is_final_provisioning_state(state: Optional[str]) -> bool:
    return is_failed_provisioning_state(state) or is_succeeded_provisioning_state(state)


class GatewayReference(BaseModel):
    """A virtual network gateway as referenced from a connection."""

    id: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    provisioning_state: Optional[str] = None


class ConnectionDescriptor(BaseModel):
    """One side of a gateway-to-gateway tunnel."""

    name: Optional[str] = None
    location: Optional[str] = None
    provisioning_state: Optional[str] = None
    connection_type: Optional[ConnectionType] = None
    connection_status: Optional[ConnectionStatus] = None
    shared_key: Optional[str] = None
    gateway1: Optional[GatewayReference] = None   # Local end
    gateway2: Optional[GatewayReference] = None   # Peer end


class VPNConnectionPair(BaseModel):
    """
    Host and guest connection descriptors.

    An empty pair (neither side observed) is the valid "not yet provisioned"
    state, distinct from an error.
    """

    host: Optional[ConnectionDescriptor] = None
    guest: Optional[ConnectionDescriptor] = None

    def is_empty(self) -> bool:
        return self.host is None and self.guest is None


class DNSRecord(BaseModel):
    """NS record set delegating a cluster zone from the host zone."""

    relative_name: str
    zone: str
    zone_resource_group: str
    name_servers: List[str] = []
    ttl: int = 300

    @property
    def natural_key(self) -> str:
        return f"{self.zone_resource_group}/{self.zone}/{self.relative_name}"
