"""
Convergence Contract — the shape every managed resource kind implements.

A handler observes the current state of one resource kind, computes the
desired state, diffs the two into a Patch and applies the non-empty fields
in the order create → update → delete.

Behavioral Contract:
- new_update_patch / new_delete_patch are pure: same inputs, same Patch
- Equal current and desired states yield an empty Patch (no provider call)
- Apply is state-driven: an interrupted pass is finished by the next pass
  recomputing its Patch from fresh observations, never from an action log
- Provider errors surface unwrapped; no partial-apply rollback is attempted
- A handler never sleeps or retries; "not yet" is returned as a deferred
  Observation and the reconciler decides when to come back
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.patch import Patch
from operator_kernel.throttling.gatekeeper import Gatekeeper

logger = logging.getLogger(__name__)


class Observation:
    """
    Result of reading current or desired state.

    Either carries a value (which may legitimately be empty, e.g. a resource
    that was not created yet) or is deferred with a reason, meaning the pass
    must stop issuing side effects and retry on a later pass.
    """

    __slots__ = ("value", "deferred_reason")

    def __init__(self, value: Any = None, deferred_reason: Optional[str] = None):
        self.value = value
        self.deferred_reason = deferred_reason

    @classmethod
    def observed(cls, value: Any) -> "Observation":
        return cls(value=value)

    @classmethod
    def deferred(cls, reason: str) -> "Observation":
        return cls(deferred_reason=reason)

    @property
    def is_deferred(self) -> bool:
        return self.deferred_reason is not None

    def __repr__(self) -> str:
        if self.is_deferred:
            return f"Observation(deferred={self.deferred_reason!r})"
        return f"Observation(value={self.value!r})"


class ResourceHandler(ABC):
    """
    Base class for one managed resource kind.

    Subclasses set `name` and implement the read, diff and apply steps.
    Handlers whose provider calls are rate limited carry a `gatekeeper`;
    the reconciler consults it before the pass and feeds throttling hints
    back into it.
    """

    name: str = "resource"

    def __init__(self, gatekeeper: Optional[Gatekeeper] = None):
        self.gatekeeper = gatekeeper

    @abstractmethod
    def get_current_state(self, cluster: ClusterSpec) -> Observation:
        ...

    @abstractmethod
    def get_desired_state(self, cluster: ClusterSpec) -> Observation:
        ...

    @abstractmethod
    def new_update_patch(self, cluster: ClusterSpec, current: Any, desired: Any) -> Patch:
        ...

    def new_delete_patch(self, cluster: ClusterSpec, current: Any, desired: Any) -> Patch:
        """Kinds without delete-on-teardown return an empty patch."""
        return Patch()

    def apply_create_change(self, cluster: ClusterSpec, change: Any) -> None:
        pass

    def apply_update_change(self, cluster: ClusterSpec, change: Any) -> None:
        pass

    def apply_delete_change(self, cluster: ClusterSpec, change: Any) -> None:
        pass

    def apply_patch(self, cluster: ClusterSpec, patch: Patch) -> None:
        """Apply the non-empty fields of a patch in create → update → delete order."""
        if patch.create_change is not None:
            self.apply_create_change(cluster, patch.create_change)
        if patch.update_change is not None:
            self.apply_update_change(cluster, patch.update_change)
        if patch.delete_change is not None:
            self.apply_delete_change(cluster, patch.delete_change)

    def new_patch(self, cluster: ClusterSpec, current: Any, desired: Any) -> Patch:
        """Update patch for live clusters, delete patch for clusters being torn down."""
        if cluster.deleted:
            return self.new_delete_patch(cluster, current, desired)
        return self.new_update_patch(cluster, current, desired)
