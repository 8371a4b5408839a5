"""
Reconciler Loop — the heartbeat of the operator.

Every heartbeat, each registered cluster is passed through every resource
handler in order. One handler pass reads current and desired state, diffs
them into a Patch and applies it.

Pass outcomes:
  CONVERGED  empty patch, no provider call issued
  APPLIED    non-empty patch applied
  DEFERRED   a handler asked to come back later (non-final provisioning,
             missing prerequisite, throttled call or closed Gatekeeper)
  FAILED     provider or transport error; the next pass retries from scratch

The loop is the only place that turns exceptions into outcomes. It never
sleeps or retries inside a pass: retry cadence is the heartbeat itself.

A cluster marked deleted stays registered until one pass over it ends with
every handler CONVERGED on its delete path; it is then dropped from the
inventory.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import uuid4

from operator_kernel.convergence.contract import ResourceHandler
from operator_kernel.history.store import HistoryStore
from operator_kernel.inventory.store import ClusterInventory
from operator_kernel.models.cluster import ClusterSpec
from operator_kernel.models.history import PassRecord
from operator_kernel.models.reconciler import (
    PassResult,
    ReconcileOutcome,
    ReconcilerConfig,
    describe_change,
)
from operator_kernel.provider.client import ProviderError, ThrottledError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.utcnow()


class ReconcilerLoop:
    """
    The Reconciler Loop.

    States per cluster and handler:
      OBSERVE → DIFF → (CONVERGED | APPLY → APPLIED) | DEFERRED | FAILED
    """

    def __init__(
        self,
        inventory: ClusterInventory,
        handlers: List[ResourceHandler],
        history: Optional[HistoryStore] = None,
        config: Optional[ReconcilerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.inventory = inventory
        self.handlers = list(handlers)
        self.history = history or HistoryStore()
        self.config = config or ReconcilerConfig()
        self._clock = clock or _utcnow
        self._running = False
        self._cycles = 0
        self._last_cycle_id: Optional[str] = None
        self._last_cycle_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def last_cycle_id(self) -> Optional[str]:
        return self._last_cycle_id

    @property
    def last_cycle_at(self) -> Optional[datetime]:
        return self._last_cycle_at

    def reconcile_resource(self, handler: ResourceHandler, cluster: ClusterSpec) -> PassResult:
        """Run one handler pass over one cluster and classify how it ended."""
        started_at = self._clock()

        def result(outcome, reason=None, changes=None, error=None) -> PassResult:
            return PassResult(
                cluster_id=cluster.cluster_id,
                resource=handler.name,
                outcome=outcome,
                reason=reason,
                changes=changes,
                error=error,
                started_at=started_at,
                finished_at=self._clock(),
            )

        gate = handler.gatekeeper
        if gate is not None and not gate.can_proceed():
            reason = f"throttled until {gate.retry_after().isoformat()}"
            logger.info("skipping %s for cluster %s: %s", handler.name, cluster.cluster_id, reason)
            return result(ReconcileOutcome.DEFERRED, reason=reason)

        try:
            current = handler.get_current_state(cluster)
            if current.is_deferred:
                logger.info("deferring %s for cluster %s: %s",
                            handler.name, cluster.cluster_id, current.deferred_reason)
                return result(ReconcileOutcome.DEFERRED, reason=current.deferred_reason)

            desired = handler.get_desired_state(cluster)
            if desired.is_deferred:
                logger.info("deferring %s for cluster %s: %s",
                            handler.name, cluster.cluster_id, desired.deferred_reason)
                return result(ReconcileOutcome.DEFERRED, reason=desired.deferred_reason)

            patch = handler.new_patch(cluster, current.value, desired.value)
            if patch.is_empty():
                logger.debug("%s converged for cluster %s", handler.name, cluster.cluster_id)
                return result(ReconcileOutcome.CONVERGED)

            changes = {
                "create": describe_change(patch.create_change),
                "update": describe_change(patch.update_change),
                "delete": describe_change(patch.delete_change),
            }
            handler.apply_patch(cluster, patch)
            logger.info("applied %s for cluster %s", handler.name, cluster.cluster_id)
            return result(ReconcileOutcome.APPLIED, changes=changes)

        except ThrottledError as e:
            retry_after = e.retry_after or (
                self._clock() + timedelta(seconds=self.config.default_throttle_backoff_seconds)
            )
            if gate is not None:
                gate.not_before(retry_after)
            reason = f"throttled until {retry_after.isoformat()}"
            logger.info("%s for cluster %s %s", handler.name, cluster.cluster_id, reason)
            return result(ReconcileOutcome.DEFERRED, reason=reason, error=e)

        except ProviderError as e:
            logger.warning("%s failed for cluster %s: %s", handler.name, cluster.cluster_id, e)
            return result(ReconcileOutcome.FAILED, reason=str(e), error=e)

        except Exception as e:
            logger.exception("%s failed for cluster %s", handler.name, cluster.cluster_id)
            return result(ReconcileOutcome.FAILED, reason=str(e), error=e)

    def reconcile_cluster(
        self, cluster: ClusterSpec, cycle_id: Optional[str] = None
    ) -> List[PassResult]:
        """Pass one cluster through every handler, recording each pass."""
        if cycle_id is None:
            cycle_id = f"cycle_{uuid4().hex[:12]}"

        results = []
        for handler in self.handlers:
            pass_result = self.reconcile_resource(handler, cluster)
            self._record(cycle_id, pass_result)
            results.append(pass_result)

            if pass_result.outcome == ReconcileOutcome.FAILED and self.config.stop_on_failure:
                logger.info("stopping pass for cluster %s after %s failed",
                            cluster.cluster_id, handler.name)
                break

        if cluster.deleted and self._torn_down(results):
            self.inventory.remove(cluster.cluster_id)
            logger.info("cluster %s torn down, removed from inventory", cluster.cluster_id)

        return results

    def _torn_down(self, results: List[PassResult]) -> bool:
        """Every handler ran its delete path and found nothing left to do."""
        return len(results) == len(self.handlers) and all(
            r.outcome == ReconcileOutcome.CONVERGED for r in results
        )

    def reconcile_once(self) -> List[PassResult]:
        """
        Run a single reconciliation cycle over every registered cluster.
        Returns one result per handler pass.
        """
        cycle_id = f"cycle_{uuid4().hex[:12]}"
        results = []
        for cluster in self.inventory.list():
            results.extend(self.reconcile_cluster(cluster, cycle_id=cycle_id))

        self._cycles += 1
        self._last_cycle_id = cycle_id
        self._last_cycle_at = self._clock()
        return results

    def _record(self, cycle_id: str, pass_result: PassResult) -> None:
        self.history.append(PassRecord(
            id=f"pass_{uuid4().hex[:12]}",
            cycle_id=cycle_id,
            cluster_id=pass_result.cluster_id,
            resource=pass_result.resource,
            outcome=pass_result.outcome,
            reason=pass_result.reason,
            changes=pass_result.changes,
            error=repr(pass_result.error) if pass_result.error else None,
            started_at=pass_result.started_at,
            finished_at=pass_result.finished_at,
        ))

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the reconciler loop asynchronously."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                self.reconcile_once()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.heartbeat_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
