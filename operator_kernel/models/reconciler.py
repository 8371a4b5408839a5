"""Reconciler configuration and per-pass outcomes."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ReconcilerConfig(BaseModel):
    """Configuration for the Reconciler Loop."""

    heartbeat_interval_seconds: int = 60
    default_throttle_backoff_seconds: int = 300   # Used when a throttle carries no hint
    stop_on_failure: bool = True                  # Skip a cluster's remaining handlers on failure


class ReconcileOutcome(str, Enum):
    """Result variant of one handler pass for one cluster."""
    CONVERGED = "converged"   # Empty patch, no provider call issued
    APPLIED = "applied"       # Non-empty patch applied
    DEFERRED = "deferred"     # Cooperative cancellation, retry on a later pass
    FAILED = "failed"         # Provider/transport error, retry from scratch


class PassResult(BaseModel):
    """What happened when one resource handler reconciled one cluster."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    cluster_id: str
    resource: str
    outcome: ReconcileOutcome
    reason: Optional[str] = None
    changes: Optional[dict] = None
    error: Optional[Exception] = None
    started_at: datetime
    finished_at: datetime

    @property
    def ok(self) -> bool:
        return self.outcome != ReconcileOutcome.FAILED

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "resource": self.resource,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "changes": self.changes,
            "error": repr(self.error) if self.error else None,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
        }


REDACTED_FIELDS = {"shared_key"}


def describe_change(change: Any) -> Any:
    """JSON-friendly rendering of a patch field for history and API output. Secrets are masked."""
    if change is None:
        return None
    if isinstance(change, BaseModel):
        return describe_change(change.model_dump(mode="json"))
    if isinstance(change, dict):
        return {
            str(k): "***" if k in REDACTED_FIELDS and v is not None else describe_change(v)
            for k, v in change.items()
        }
    if isinstance(change, (list, tuple)):
        return [describe_change(v) for v in change]
    if isinstance(change, (set, frozenset)):
        return sorted(describe_change(v) for v in change)
    return change
