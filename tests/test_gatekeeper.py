"""Tests for the Gatekeeper and its registry."""

import threading
from datetime import datetime, timedelta

from operator_kernel.throttling.gatekeeper import Gatekeeper, GatekeeperRegistry


class _Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TestGatekeeper:
    def setup_method(self):
        self.clock = _Clock(datetime(2024, 1, 1, 12, 0, 0))
        self.gate = Gatekeeper(clock=self.clock)

    def test_fresh_gate_proceeds(self):
        assert Gatekeeper().can_proceed() is True
        assert Gatekeeper().retry_after() is None

    def test_future_time_blocks(self):
        self.gate.not_before(self.clock.now + timedelta(seconds=100))
        assert self.gate.can_proceed() is False

    def test_past_time_proceeds(self):
        self.gate.not_before(self.clock.now - timedelta(seconds=1))
        assert self.gate.can_proceed() is True

    def test_exact_time_still_blocks(self):
        self.gate.not_before(self.clock.now)
        assert self.gate.can_proceed() is False

    def test_reopens_after_time_passes(self):
        self.gate.not_before(self.clock.now + timedelta(seconds=100))
        self.clock.now += timedelta(seconds=101)
        assert self.gate.can_proceed() is True

    def test_last_writer_wins(self):
        later = self.clock.now + timedelta(seconds=300)
        earlier = self.clock.now - timedelta(seconds=5)
        self.gate.not_before(later)
        self.gate.not_before(earlier)
        assert self.gate.retry_after() == earlier
        assert self.gate.can_proceed() is True

    def test_real_clock(self):
        gate = Gatekeeper()
        gate.not_before(datetime.utcnow() + timedelta(seconds=100))
        assert gate.can_proceed() is False

    def test_concurrent_writers(self):
        base = self.clock.now
        values = [base + timedelta(seconds=i) for i in range(50)]
        threads = [threading.Thread(target=self.gate.not_before, args=(v,)) for v in values]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert self.gate.retry_after() in values


class TestGatekeeperRegistry:
    def test_same_call_site_same_gate(self):
        registry = GatekeeperRegistry()
        assert registry.get("compute") is registry.get("compute")
        assert registry.get("compute") is not registry.get("network")

    def test_snapshot(self):
        clock = _Clock(datetime(2024, 1, 1, 12, 0, 0))
        registry = GatekeeperRegistry(clock=clock)
        registry.get("network")
        registry.get("compute").not_before(clock.now + timedelta(minutes=5))

        snapshot = registry.snapshot()
        assert list(snapshot) == ["compute", "network"]
        assert snapshot["compute"]["can_proceed"] is False
        assert snapshot["compute"]["retry_after"] == "2024-01-01T12:05:00"
        assert snapshot["network"] == {"can_proceed": True, "retry_after": None}
