"""Tests for the Pass History Store."""

from datetime import datetime

from operator_kernel.history.store import HistoryStore
from operator_kernel.models.history import PassRecord
from operator_kernel.models.reconciler import ReconcileOutcome


def _make_pass_record(
    record_id: str = "pass_1",
    cycle_id: str = "cycle_1",
    cluster_id: str = "c1",
    resource: str = "vpnconnection",
    outcome: ReconcileOutcome = ReconcileOutcome.APPLIED,
) -> PassRecord:
    now = datetime.utcnow()
    return PassRecord(
        id=record_id,
        cycle_id=cycle_id,
        cluster_id=cluster_id,
        resource=resource,
        outcome=outcome,
        changes={"update": {"host": {"name": cluster_id}}},
        started_at=now,
        finished_at=now,
    )


class TestHistoryStore:
    def setup_method(self):
        self.store = HistoryStore(db_path=":memory:")

    def test_append_and_retrieve(self):
        result = self.store.append(_make_pass_record())

        assert result.signature != ""
        assert result.prior_record_hash is None  # First record

        retrieved = self.store.get_by_id("pass_1")
        assert retrieved is not None
        assert retrieved.outcome == ReconcileOutcome.APPLIED
        assert retrieved.changes == {"update": {"host": {"name": "c1"}}}

    def test_chain_links(self):
        first = self.store.append(_make_pass_record("pass_1"))
        second = self.store.append(_make_pass_record("pass_2"))
        assert second.prior_record_hash == first.signature

    def test_chain_integrity(self):
        for i in range(5):
            self.store.append(_make_pass_record(f"pass_{i}"))
        assert self.store.verify_chain_integrity() is True

    def test_empty_chain_is_valid(self):
        assert self.store.verify_chain_integrity() is True

    def test_tampering_detected(self):
        self.store.append(_make_pass_record("pass_1"))
        self.store.append(_make_pass_record("pass_2"))

        tampered = self.store.get_by_id("pass_1")
        tampered.outcome = ReconcileOutcome.CONVERGED
        self.store._conn.execute(
            "UPDATE pass_history SET record_json = ? WHERE id = ?",
            (tampered.model_dump_json(), "pass_1"),
        )
        assert self.store.verify_chain_integrity() is False

    def test_query_by_cycle(self):
        self.store.append(_make_pass_record("pass_1", cycle_id="cycle_a"))
        self.store.append(_make_pass_record("pass_2", cycle_id="cycle_a", resource="fleet"))
        self.store.append(_make_pass_record("pass_3", cycle_id="cycle_b"))

        records = self.store.get_by_cycle("cycle_a")
        assert [r.id for r in records] == ["pass_1", "pass_2"]

    def test_query_by_cluster_and_resource(self):
        self.store.append(_make_pass_record("pass_1", cluster_id="c1"))
        self.store.append(_make_pass_record("pass_2", cluster_id="c2", resource="fleet"))

        assert [r.id for r in self.store.query_by_cluster("c2")] == ["pass_2"]
        assert [r.id for r in self.store.query_by_resource("vpnconnection")] == ["pass_1"]

    def test_query_by_outcome(self):
        self.store.append(_make_pass_record("pass_1", outcome=ReconcileOutcome.DEFERRED))
        self.store.append(_make_pass_record("pass_2", outcome=ReconcileOutcome.FAILED))

        failed = self.store.query_by_outcome(ReconcileOutcome.FAILED)
        assert [r.id for r in failed] == ["pass_2"]

    def test_query_recent(self):
        for i in range(10):
            self.store.append(_make_pass_record(f"pass_{i}"))

        recent = self.store.query_recent(limit=3)
        assert [r.id for r in recent] == ["pass_7", "pass_8", "pass_9"]

    def test_count(self):
        assert self.store.count() == 0
        self.store.append(_make_pass_record())
        assert self.store.count() == 1

    def test_persists_to_file(self, tmp_path):
        db_path = str(tmp_path / "history.db")
        store = HistoryStore(db_path=db_path)
        store.append(_make_pass_record())
        store.close()

        reopened = HistoryStore(db_path=db_path)
        assert reopened.count() == 1
        assert reopened.verify_chain_integrity()
        reopened.close()
