"""
DNS delegation records.

Each guest cluster owns a DNS zone; the host zone delegates to it through an
NS record set named after the cluster. The update set is every desired
record not contained in the current records. Records are never deleted here,
not on drift and not on teardown.
"""

import logging
from typing import List, Optional

from operator_kernel.config.settings import HostClusterSettings, InvalidConfigError
from operator_kernel.convergence.contract import Observation, ResourceHandler
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.network import DNSRecord
from operator_kernel.models.patch import Patch
from operator_kernel.provider.client import NotFoundError, ResourceClient
from operator_kernel.throttling.gatekeeper import Gatekeeper

logger = logging.getLogger(__name__)


def record_set_name(record: DNSRecord) -> str:
    return f"{record.zone}/{record.relative_name}"


def _contains(records: List[DNSRecord], record: DNSRecord) -> bool:
    for r in records:
        if (
            r.natural_key == record.natural_key
            and sorted(r.name_servers) == sorted(record.name_servers)
        ):
            return True
    return False


class DNSRecordHandler(ResourceHandler):
    """Keeps the NS delegation of each cluster zone in the host zone."""

    name = "dnsrecord"

    def __init__(
        self,
        host_cluster: HostClusterSettings,
        records: ResourceClient,
        gatekeeper: Optional[Gatekeeper] = None,
    ):
        if not host_cluster.dns_zone:
            raise InvalidConfigError("host_cluster.dns_zone must not be empty")
        if not host_cluster.dns_zone_resource_group:
            raise InvalidConfigError("host_cluster.dns_zone_resource_group must not be empty")
        super().__init__(gatekeeper=gatekeeper)
        self.host_cluster = host_cluster
        self.records = records

    def _desired_records(self, cluster: ClusterSpec) -> List[DNSRecord]:
        return [
            DNSRecord(
                relative_name=cluster.cluster_id,
                zone=self.host_cluster.dns_zone,
                zone_resource_group=self.host_cluster.dns_zone_resource_group,
                name_servers=list(cluster.dns_zone_name_servers),
            )
        ]

    def get_current_state(self, cluster: ClusterSpec) -> Observation:
        current = []
        for desired in self._desired_records(cluster):
            name = record_set_name(desired)
            logger.debug("finding dns record %s", name)
            try:
                record = self.records.get(desired.zone_resource_group, name)
            except NotFoundError:
                logger.debug("dns record %s not found", name)
                continue
            current.append(record)
        return Observation.observed(current)

    def get_desired_state(self, cluster: ClusterSpec) -> Observation:
        # Teardown leaves records to the zone's own cleanup
        if cluster.deleted:
            return Observation.observed([])
        if not cluster.dns_zone_name_servers:
            logger.debug("cluster dns zone has no name servers yet")
            logger.debug("canceling resource")
            return Observation.deferred("cluster dns zone has no name servers yet")
        return Observation.observed(self._desired_records(cluster))

    def new_update_patch(
        self, cluster: ClusterSpec, current: List[DNSRecord], desired: List[DNSRecord]
    ) -> Patch:
        change = [d for d in desired if not _contains(current, d)]
        return Patch(update_change=change or None)

    def apply_update_change(self, cluster: ClusterSpec, change: List[DNSRecord]) -> None:
        for record in change:
            name = record_set_name(record)
            logger.debug("ensuring dns record %s", name)
            self.records.create_or_update(record.zone_resource_group, name, record).result()
            logger.debug("ensured dns record %s", name)
