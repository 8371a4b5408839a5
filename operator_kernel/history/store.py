"""
Pass History Store — append-only, cryptographically chained audit record.

Every handler pass over every cluster produces one PassRecord.

Behavioral Contract:
- Append-only. No record is ever modified or deleted.
- Each record is hashed and chained to the previous record (tamper-evident ledger).
- Every record answers: Which cluster? Which resource kind? What diverged?
  What was applied? How did the pass end?
- Queryable by cycle, cluster, resource kind, outcome and recency.
"""

import hashlib
import json
import sqlite3
import threading
from typing import List, Optional

from operator_kernel.models.history import PassRecord
from operator_kernel.models.reconciler import ReconcileOutcome


def _compute_signature(record: PassRecord) -> str:
    record_dict = record.model_dump(mode="json")
    # Zero out signature before hashing (it's what we're computing)
    record_dict["signature"] = ""
    record_bytes = json.dumps(record_dict, sort_keys=True, default=str).encode()
    return hashlib.sha256(record_bytes).hexdigest()


class HistoryStore:
    """
    Append-only pass history.
    SQLite, shared by concurrent passes through one locked connection.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the history table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS pass_history (
                id TEXT PRIMARY KEY,
                cycle_id TEXT NOT NULL,
                cluster_id TEXT NOT NULL,
                resource TEXT NOT NULL,
                outcome TEXT NOT NULL,
                signature TEXT NOT NULL,
                prior_record_hash TEXT,
                record_json TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_history_cycle_id ON pass_history(cycle_id)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_history_cluster_id ON pass_history(cluster_id)
        """)
        self._conn.commit()

    def append(self, record: PassRecord) -> PassRecord:
        """
        Append a pass record. Computes its hash and chains it to the
        previous record.
        """
        with self._lock:
            record.prior_record_hash = self._get_latest_hash()
            record.signature = _compute_signature(record)
            full_json = json.dumps(record.model_dump(mode="json"), default=str)

            self._conn.execute(
                """
                INSERT INTO pass_history (
                    id, cycle_id, cluster_id, resource, outcome,
                    signature, prior_record_hash, record_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.cycle_id,
                    record.cluster_id,
                    record.resource,
                    record.outcome.value,
                    record.signature,
                    record.prior_record_hash,
                    full_json,
                ),
            )
            self._conn.commit()
        return record

    def _get_latest_hash(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT signature FROM pass_history ORDER BY rowid DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    def _deserialize(self, row: sqlite3.Row) -> PassRecord:
        return PassRecord.model_validate_json(row["record_json"])

    def _query(self, sql: str, params: tuple = ()) -> List[PassRecord]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._deserialize(r) for r in rows]

    def get_by_id(self, record_id: str) -> Optional[PassRecord]:
        records = self._query(
            "SELECT record_json FROM pass_history WHERE id = ?", (record_id,)
        )
        return records[0] if records else None

    def get_by_cycle(self, cycle_id: str) -> List[PassRecord]:
        """All handler passes of one reconcile cycle."""
        return self._query(
            "SELECT record_json FROM pass_history WHERE cycle_id = ? ORDER BY rowid",
            (cycle_id,),
        )

    def query_by_cluster(self, cluster_id: str) -> List[PassRecord]:
        return self._query(
            "SELECT record_json FROM pass_history WHERE cluster_id = ? ORDER BY rowid",
            (cluster_id,),
        )

    def query_by_resource(self, resource: str) -> List[PassRecord]:
        return self._query(
            "SELECT record_json FROM pass_history WHERE resource = ? ORDER BY rowid",
            (resource,),
        )

    def query_by_outcome(self, outcome: ReconcileOutcome) -> List[PassRecord]:
        return self._query(
            "SELECT record_json FROM pass_history WHERE outcome = ? ORDER BY rowid",
            (outcome.value,),
        )

    def query_recent(self, limit: int = 50) -> List[PassRecord]:
        """Get the most recent pass records, oldest first."""
        records = self._query(
            "SELECT record_json FROM pass_history ORDER BY rowid DESC LIMIT ?",
            (limit,),
        )
        return list(reversed(records))

    def verify_chain_integrity(self) -> bool:
        """Verify no records have been tampered with."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT record_json, signature FROM pass_history ORDER BY rowid"
            ).fetchall()

        prior_sig = None
        for row in rows:
            record = PassRecord.model_validate_json(row["record_json"])
            if record.signature != row["signature"]:
                return False
            if record.signature != _compute_signature(record):
                return False
            if record.prior_record_hash != prior_sig:
                return False
            prior_sig = record.signature

        return True

    def count(self) -> int:
        """Total number of pass records."""
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) as cnt FROM pass_history").fetchone()
        return row["cnt"]

    def close(self) -> None:
        self._conn.close()
