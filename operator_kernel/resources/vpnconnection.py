"""
VPN Connection State Machine — the gateway-to-gateway tunnel between the
host network and a guest (tenant) cluster network.

Each side of the tunnel is a separate connection resource, provisioned and
polled independently by the provider:

  host side:  lives in the host resource group, named after the guest
              resource group, gateway1 = host gateway, gateway2 = guest gateway
  guest side: lives in the guest resource group, named after the host
              resource group, gateway1 = guest gateway, gateway2 = host gateway

Per side the provider reports Provisioning → Succeeded | Failed. Per pass the
handler derives NotFound (empty pair), InProgress (pass deferred) or Observed.

Behavioral Contract:
- A side that does not exist is a valid "not yet created" state, never an error
- A side in a non-final provisioning state defers the pass; the remaining
  side is not queried and no side effect is issued
- When either side needs an update, both sides are written, host first
- Deleting an absent connection counts as success
"""

import logging
import secrets
import string
from typing import Optional

from operator_kernel.config.settings import HostClusterSettings, InvalidConfigError
from operator_kernel.convergence.contract import Observation, ResourceHandler
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.network import (
    ConnectionDescriptor,
    ConnectionStatus,
    ConnectionType,
    GatewayReference,
    VPNConnectionPair,
    is_final_provisioning_state,
    is_succeeded_provisioning_state,
)
from operator_kernel.models.patch import Patch
from operator_kernel.provider.client import NotFoundError, ResourceClient
from operator_kernel.throttling.gatekeeper import Gatekeeper

logger = logging.getLogger(__name__)

SHARED_KEY_LENGTH = 128


def new_shared_key(length: int = SHARED_KEY_LENGTH) -> str:
    alphabet = string.ascii_letters
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _gateway_id(gateway: Optional[GatewayReference]) -> Optional[str]:
    return gateway.id if gateway is not None else None


def needs_update(
    current: Optional[ConnectionDescriptor],
    desired: Optional[ConnectionDescriptor],
) -> bool:
    """
    Decide whether one side of the tunnel must be rewritten.

    Examined: name, gateway1 ID, gateway2 ID, connection type and connection
    status. If desired lacks its name or either gateway ID the comparison is
    inconclusive and no update is requested.
    """
    if (
        desired is None
        or desired.name is None
        or _gateway_id(desired.gateway1) is None
        or _gateway_id(desired.gateway2) is None
    ):
        return False

    if current is None or current.name is None or current.name != desired.name:
        return True

    if current.connection_type != desired.connection_type:
        return True

    current_gateway1 = _gateway_id(current.gateway1)
    if current_gateway1 is None or current_gateway1 != desired.gateway1.id:
        return True

    current_gateway2 = _gateway_id(current.gateway2)
    if current_gateway2 is None or current_gateway2 != desired.gateway2.id:
        return True

    if current.connection_status == ConnectionStatus.NOT_CONNECTED:
        return True

    return False


class VPNConnectionHandler(ResourceHandler):
    """Keeps the host and guest connection resources converged."""

    name = "vpnconnection"

    def __init__(
        self,
        host_cluster: HostClusterSettings,
        host_gateways: ResourceClient,
        host_connections: ResourceClient,
        guest_gateways: ResourceClient,
        guest_connections: ResourceClient,
        gatekeeper: Optional[Gatekeeper] = None,
    ):
        if not host_cluster.resource_group:
            raise InvalidConfigError("host_cluster.resource_group must not be empty")
        if not host_cluster.virtual_network_gateway:
            raise InvalidConfigError("host_cluster.virtual_network_gateway must not be empty")
        super().__init__(gatekeeper=gatekeeper)
        self.host_cluster = host_cluster
        self.host_gateways = host_gateways
        self.host_connections = host_connections
        self.guest_gateways = guest_gateways
        self.guest_connections = guest_connections

    # --- read ---

    def get_current_state(self, cluster: ClusterSpec) -> Observation:
        host_rg = self.host_cluster.resource_group
        guest_rg = cluster.resource_group

        logger.debug("finding host vpn connection %s/%s", host_rg, guest_rg)
        try:
            host = self.host_connections.get(host_rg, guest_rg)
        except NotFoundError:
            logger.debug("host vpn connection not found")
            return Observation.observed(VPNConnectionPair())

        if not is_final_provisioning_state(host.provisioning_state):
            logger.debug("host vpn connection is in state %r", host.provisioning_state)
            logger.debug("canceling resource")
            return Observation.deferred(
                f"host vpn connection is in state {host.provisioning_state!r}"
            )

        logger.debug("finding guest vpn connection %s/%s", guest_rg, host_rg)
        try:
            guest = self.guest_connections.get(guest_rg, host_rg)
        except NotFoundError:
            logger.debug("guest vpn connection not found")
            return Observation.observed(VPNConnectionPair())

        if not is_final_provisioning_state(guest.provisioning_state):
            logger.debug("guest vpn connection is in state %r", guest.provisioning_state)
            logger.debug("canceling resource")
            return Observation.deferred(
                f"guest vpn connection is in state {guest.provisioning_state!r}"
            )

        logger.debug("found host and guest vpn connections")
        return Observation.observed(VPNConnectionPair(host=host, guest=guest))

    def get_desired_state(self, cluster: ClusterSpec) -> Observation:
        host_gateway = None
        guest_gateway = None

        # The guest gateway need not be ready to tear the connection down.
        if not cluster.deleted:
            try:
                guest_gateway = self.guest_gateways.get(
                    cluster.resource_group, cluster.vpn_gateway_name
                )
            except NotFoundError:
                logger.debug("guest vpn gateway was not found")
                logger.debug("canceling resource")
                return Observation.deferred("guest vpn gateway was not found")
            if not is_succeeded_provisioning_state(guest_gateway.provisioning_state):
                logger.debug("guest vpn gateway is in state %r", guest_gateway.provisioning_state)
                logger.debug("canceling resource")
                return Observation.deferred(
                    f"guest vpn gateway is in state {guest_gateway.provisioning_state!r}"
                )

            try:
                host_gateway = self.host_gateways.get(
                    self.host_cluster.resource_group,
                    self.host_cluster.virtual_network_gateway,
                )
            except NotFoundError:
                logger.debug("host vpn gateway was not found")
                logger.debug("canceling resource")
                return Observation.deferred("host vpn gateway was not found")
            if not is_succeeded_provisioning_state(host_gateway.provisioning_state):
                logger.debug("host vpn gateway is in state %r", host_gateway.provisioning_state)
                logger.debug("canceling resource")
                return Observation.deferred(
                    f"host vpn gateway is in state {host_gateway.provisioning_state!r}"
                )

        return Observation.observed(self.desired_pair(cluster, guest_gateway, host_gateway))

    def desired_pair(
        self,
        cluster: ClusterSpec,
        guest_gateway: Optional[GatewayReference],
        host_gateway: Optional[GatewayReference],
    ) -> VPNConnectionPair:
        shared_key = new_shared_key()

        host = ConnectionDescriptor(
            name=cluster.resource_group,
            location=host_gateway.location if host_gateway else None,
            connection_type=ConnectionType.VNET2VNET,
            shared_key=shared_key,
            gateway1=host_gateway,
            gateway2=guest_gateway,
        )
        guest = ConnectionDescriptor(
            name=self.host_cluster.resource_group,
            location=guest_gateway.location if guest_gateway else None,
            connection_type=ConnectionType.VNET2VNET,
            shared_key=shared_key,
            gateway1=guest_gateway,
            gateway2=host_gateway,
        )
        return VPNConnectionPair(host=host, guest=guest)

    # --- diff ---

    def new_update_patch(
        self, cluster: ClusterSpec, current: VPNConnectionPair, desired: VPNConnectionPair
    ) -> Patch:
        change = None
        # Both sides are rewritten together so their shared key stays consistent.
        if needs_update(current.host, desired.host):
            change = desired
        if needs_update(current.guest, desired.guest):
            change = desired
        return Patch(update_change=change)

    def new_delete_patch(
        self, cluster: ClusterSpec, current: VPNConnectionPair, desired: VPNConnectionPair
    ) -> Patch:
        if current is None or current.is_empty():
            return Patch()
        return Patch(delete_change=desired)

    # --- apply ---

    def apply_update_change(self, cluster: ClusterSpec, change: VPNConnectionPair) -> None:
        if change is None or change.is_empty():
            logger.debug("vpn connections do not need to be updated")
            return

        host_rg = self.host_cluster.resource_group
        guest_rg = cluster.resource_group

        logger.debug("ensuring host vpn connection %s/%s", host_rg, change.host.name)
        self.host_connections.create_or_update(host_rg, change.host.name, change.host).result()
        logger.debug("ensured host vpn connection")

        logger.debug("ensuring guest vpn connection %s/%s", guest_rg, change.guest.name)
        self.guest_connections.create_or_update(guest_rg, change.guest.name, change.guest).result()
        logger.debug("ensured guest vpn connection")

    def apply_delete_change(self, cluster: ClusterSpec, change: VPNConnectionPair) -> None:
        if change is None or change.is_empty():
            return

        if change.host is not None:
            self._delete(self.host_connections, self.host_cluster.resource_group,
                         change.host.name, "host")
        if change.guest is not None:
            self._delete(self.guest_connections, cluster.resource_group,
                         change.guest.name, "guest")

    def _delete(self, client: ResourceClient, resource_group: str, name: str, side: str) -> None:
        logger.debug("deleting %s vpn connection %s/%s", side, resource_group, name)
        try:
            client.delete(resource_group, name).result()
        except NotFoundError:
            logger.debug("%s vpn connection already deleted", side)
            return
        logger.debug("deleted %s vpn connection", side)
