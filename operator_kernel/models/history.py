"""Pass Record — the audit entry for one handler pass over one cluster."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from operator_kernel.models.reconciler import ReconcileOutcome


class PassRecord(BaseModel):
    """
    One entry in the append-only history. Answers: which cluster, which
    resource kind, what diverged, what was applied, and how the pass ended.
    """

    id: str
    cycle_id: str                 # Groups all handler passes of one reconcile cycle
    cluster_id: str
    resource: str
    outcome: ReconcileOutcome
    reason: Optional[str] = None
    changes: Optional[dict] = None
    error: Optional[str] = None
    started_at: datetime
    finished_at: datetime

    # INTEGRITY
    signature: str = ""
    prior_record_hash: Optional[str] = None
