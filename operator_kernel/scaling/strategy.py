"""
Incremental Scale Strategy — one unit toward desired per reconcile pass.

Every added or removed instance gets a full reconcile cycle to be health
checked before the next change. This is deliberately not a batch strategy.

Behavioral Contract:
- current < desired → current + 1
- current > desired → current - 1
- current == desired → current (no provider call)
- Negative counts are a caller-side contract violation and not checked here
"""

import logging
from typing import Protocol

from operator_kernel.provider.client import ScaleSetClient

logger = logging.getLogger(__name__)


class ScaleStrategy(Protocol):
    def get_node_count(self, current: int, desired: int) -> int: ...


class IncrementalScaleStrategy:
    """Scale by exactly one instance per call."""

    def get_node_count(self, current: int, desired: int) -> int:
        if current < desired:
            return current + 1
        if current > desired:
            return current - 1
        return current


def scale_fleet(
    client: ScaleSetClient,
    resource_group: str,
    fleet_name: str,
    desired: int,
    strategy: ScaleStrategy,
) -> int:
    """
    Move a scale set's capacity one strategy step toward `desired`.

    Returns the capacity the fleet has after the call. Issues no provider call
    when the fleet already sits at the computed count.
    """
    scale_set = client.get(resource_group, fleet_name)
    current = scale_set.capacity
    target = strategy.get_node_count(current, desired)

    if target == current:
        logger.debug("fleet %s already at %d instances", fleet_name, current)
        return current

    logger.info("scaling fleet %s from %d to %d instances (desired %d)",
                fleet_name, current, target, desired)
    scale_set.capacity = target
    client.create_or_update(resource_group, fleet_name, scale_set).result()
    return target
