"""
Provider Client Contract — the only shapes the kernel depends on.

Every managed resource kind is backed by a client exposing get,
create_or_update and delete. Mutating calls return a LongRunningOperation
whose result() is the completion responder: it blocks until the provider
settles the operation and raises the provider error if it failed.

Behavioral Contract:
- get raises NotFoundError when the resource does not exist
- ThrottledError carries the earliest time a retry may succeed
- Any other failure is a ProviderError, surfaced unwrapped to the caller
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Set

from operator_kernel.models.compute import ScaleSet, ScaleSetInstance
from operator_kernel.models.storage import ContainerObject
from operator_kernel.throttling.retry_after import HeaderValue, ParseError, parse_retry_after


class ProviderError(Exception):
    """Raised when a provider call fails."""
    pass


class NotFoundError(ProviderError):
    """Raised when the requested resource does not exist."""
    pass


class ThrottledError(ProviderError):
    """Raised when the provider rejected a call because of rate limiting."""

    def __init__(self, message: str, retry_after: Optional[datetime] = None):
        super().__init__(message)
        self.retry_after = retry_after

    @classmethod
    def from_headers(
        cls,
        message: str,
        headers: Optional[Mapping[str, HeaderValue]],
        now: Optional[datetime] = None,
    ) -> "ThrottledError":
        """
        Build the error for a throttled response. An unusable Retry-After hint
        leaves retry_after unset; the caller's default backoff applies.
        """
        try:
            retry_after = parse_retry_after(headers, now)
        except ParseError:
            retry_after = None
        return cls(message, retry_after=retry_after)


class LongRunningOperation:
    """Handle on an asynchronous provider operation."""

    def __init__(self, wait: Optional[Callable[[], Any]] = None, value: Any = None):
        self._wait = wait
        self._value = value
        self._done = wait is None

    def done(self) -> bool:
        return self._done

    def result(self) -> Any:
        """Await completion and return the operation's final value."""
        if not self._done:
            self._value = self._wait()
            self._done = True
        return self._value


class ResourceClient(Protocol):
    """CRUD client for one resource kind (gateways, connections, DNS records)."""

    def get(self, resource_group: str, name: str) -> Any: ...

    def create_or_update(
        self, resource_group: str, name: str, descriptor: Any
    ) -> LongRunningOperation: ...

    def delete(self, resource_group: str, name: str) -> LongRunningOperation: ...


class ScaleSetClient(Protocol):
    """Compute fleet client."""

    def get(self, resource_group: str, name: str) -> ScaleSet: ...

    def list_instances(self, resource_group: str, name: str) -> List[ScaleSetInstance]: ...

    def create_or_update(
        self, resource_group: str, name: str, scale_set: ScaleSet
    ) -> LongRunningOperation: ...

    def update_instances(
        self, resource_group: str, name: str, instance_ids: List[str]
    ) -> LongRunningOperation: ...

    def reimage(
        self, resource_group: str, name: str, instance_ids: List[str]
    ) -> LongRunningOperation: ...


class BlobClient(Protocol):
    """Storage container client."""

    def container_exists(
        self, resource_group: str, account_name: str, container_name: str
    ) -> bool: ...

    def list_objects(
        self, resource_group: str, account_name: str, container_name: str
    ) -> Dict[str, ContainerObject]: ...

    def put_object(
        self, resource_group: str, obj: ContainerObject
    ) -> LongRunningOperation: ...


class DrainerClient(Protocol):
    """Node drain coordination, keyed by instance (node) name."""

    def list_drained(self, cluster_id: str) -> Set[str]: ...

    def request_drain(self, cluster_id: str, instance_name: str) -> None: ...

    def delete(self, cluster_id: str, instance_name: str) -> None: ...
