"""Tests for the DNS delegation record handler."""

import pytest

from operator_kernel.config.settings import HostClusterSettings, InvalidConfigError
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.network import DNSRecord
from operator_kernel.provider.memory import InMemoryResourceClient
from operator_kernel.resources.dnsrecord import DNSRecordHandler

NAME_SERVERS = ["ns1.example.net", "ns2.example.net"]


def _make_host_settings() -> HostClusterSettings:
    return HostClusterSettings(
        resource_group="host-rg",
        virtual_network_gateway="host-vpn-gateway",
        dns_zone="example.com",
        dns_zone_resource_group="dns-rg",
    )


class TestDNSRecordHandler:
    def setup_method(self):
        self.records = InMemoryResourceClient()
        self.handler = DNSRecordHandler(host_cluster=_make_host_settings(), records=self.records)
        self.cluster = ClusterSpec(
            cluster_id="c1", operator_version="1.0.0", dns_zone_name_servers=NAME_SERVERS
        )

    def _pass(self):
        current = self.handler.get_current_state(self.cluster).value
        desired = self.handler.get_desired_state(self.cluster).value
        patch = self.handler.new_update_patch(self.cluster, current, desired)
        self.handler.apply_patch(self.cluster, patch)
        return patch

    def test_requires_dns_zone(self):
        with pytest.raises(InvalidConfigError):
            DNSRecordHandler(host_cluster=HostClusterSettings(), records=self.records)

    def test_missing_name_servers_defers(self):
        cluster = self.cluster.model_copy(update={"dns_zone_name_servers": []})
        assert self.handler.get_desired_state(cluster).is_deferred

    def test_teardown_without_name_servers_does_not_defer(self):
        cluster = self.cluster.model_copy(update={"dns_zone_name_servers": [], "deleted": True})
        assert not self.handler.get_desired_state(cluster).is_deferred

    def test_missing_record_is_created(self):
        patch = self._pass()
        assert [r.relative_name for r in patch.update_change] == ["c1"]
        stored = self.records.items[("dns-rg", "example.com/c1")]
        assert stored.name_servers == NAME_SERVERS

    def test_converged_record_issues_no_call(self):
        self._pass()
        self.records.calls.clear()
        assert self._pass().is_empty()
        assert self.records.calls == []

    def test_name_server_order_does_not_matter(self):
        self._pass()
        cluster = self.cluster.model_copy(
            update={"dns_zone_name_servers": list(reversed(NAME_SERVERS))}
        )
        current = self.handler.get_current_state(cluster).value
        desired = self.handler.get_desired_state(cluster).value
        assert self.handler.new_update_patch(cluster, current, desired).is_empty()

    def test_changed_name_servers_are_updated(self):
        self.records.put("dns-rg", "example.com/c1", DNSRecord(
            relative_name="c1", zone="example.com", zone_resource_group="dns-rg",
            name_servers=["ns-old.example.net"],
        ))
        patch = self._pass()
        assert patch.update_change[0].name_servers == NAME_SERVERS
        assert self.records.items[("dns-rg", "example.com/c1")].name_servers == NAME_SERVERS

    def test_teardown_does_not_delete(self):
        self._pass()
        deleted = self.cluster.model_copy(update={"deleted": True})
        current = self.handler.get_current_state(deleted).value
        desired = self.handler.get_desired_state(deleted).value
        assert self.handler.new_patch(deleted, current, desired).is_empty()
