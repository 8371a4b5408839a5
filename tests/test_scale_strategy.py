"""Tests for the Incremental Scale Strategy."""

import pytest

from operator_kernel.models.compute import ScaleSet
from operator_kernel.provider.memory import InMemoryScaleSetClient
from operator_kernel.scaling.strategy import IncrementalScaleStrategy, scale_fleet


class TestIncrementalScaleStrategy:
    def setup_method(self):
        self.strategy = IncrementalScaleStrategy()

    @pytest.mark.parametrize("current,desired,expected", [
        (3, 5, 4),
        (5, 3, 4),
        (4, 4, 4),
        (0, 1, 1),
        (1, 0, 0),
        (0, 10, 1),
    ])
    def test_one_step_toward_desired(self, current, desired, expected):
        assert self.strategy.get_node_count(current, desired) == expected


class TestScaleFleet:
    def setup_method(self):
        self.client = InMemoryScaleSetClient()
        self.client.put("rg", ScaleSet(name="c1-worker", capacity=3))
        self.strategy = IncrementalScaleStrategy()

    def test_scales_by_one(self):
        count = scale_fleet(self.client, "rg", "c1-worker", 5, self.strategy)
        assert count == 4
        assert self.client.scale_sets[("rg", "c1-worker")].capacity == 4
        assert self.client.mutating_calls("create_or_update") == [
            ("create_or_update", "rg", "c1-worker", "4"),
        ]

    def test_repeated_passes_converge(self):
        scale_fleet(self.client, "rg", "c1-worker", 5, self.strategy)
        scale_fleet(self.client, "rg", "c1-worker", 5, self.strategy)
        count = scale_fleet(self.client, "rg", "c1-worker", 5, self.strategy)
        assert count == 5
        assert len(self.client.mutating_calls("create_or_update")) == 2

    def test_no_call_at_desired(self):
        count = scale_fleet(self.client, "rg", "c1-worker", 3, self.strategy)
        assert count == 3
        assert self.client.calls == []
