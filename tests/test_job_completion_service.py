"""Tests for the job completion transaction.

Coverage:
  1. Normal completion: pool, lifetime counters, items, equipment, logs, job flags
  2. Over-reported usage clamps stock at zero; lifetime + log keep the requested amount
  3. Second submission → AlreadyProcessedError, stock untouched
  4. Failure mid-transaction rolls back every change; a retry then succeeds
  5. Commit failure → TransactionFailureError, nothing persisted
  6. Tenant isolation: other tenant's job / items are not reachable
  7. Unknown inventory item → ValidationError before anything is written
  8. Equipment source (actuals vs planned list), missing equipment skipped
  9. start_job / list_job_material_logs
 10. Completions in a row: pool never negative, lifetime = sum requested

Uses session-scoped `app` and autouse `session` from conftest.py.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

import foamops.services.job_completion_service as jcs
from foamops.core.exceptions import (
    AlreadyProcessedError,
    NotFoundError,
    TransactionFailureError,
    ValidationError,
)
from foamops.models import db
from foamops.models.inventory import (
    ACTION_USAGE,
    EQUIPMENT_AVAILABLE,
    MATERIAL_CLOSED_CELL,
    MATERIAL_INVENTORY,
    MATERIAL_OPEN_CELL,
    ChemicalStock,
    Equipment,
    InventoryItem,
    MaterialLog,
)
from foamops.models.job import EXEC_COMPLETED, EXEC_IN_PROGRESS, EXEC_NOT_STARTED, Job


# ── Helpers ─────────────────────────────────────────────────────────────────


def _pool(tenant_id) -> ChemicalStock:
    return ChemicalStock.query.filter_by(tenant_id=tenant_id).one()


def _logs(tenant_id, job_id=None) -> list[MaterialLog]:
    q = MaterialLog.query.filter_by(tenant_id=tenant_id)
    if job_id is not None:
        q = q.filter_by(job_id=job_id)
    return q.order_by(MaterialLog.id).all()


def _snapshot(tenant_id, item_ids=()):
    db.session.expire_all()
    pool = _pool(tenant_id)
    return {
        "open": pool.open_cell_sets,
        "closed": pool.closed_cell_sets,
        "lifetime_open": pool.lifetime_open_cell_used,
        "lifetime_closed": pool.lifetime_closed_cell_used,
        "items": {i: db.session.get(InventoryItem, i).quantity for i in item_ids},
        "logs": len(_logs(tenant_id)),
    }


# ── Normal completion ───────────────────────────────────────────────────────


class TestCompleteJob:

    def test_deducts_stock_and_records_usage(self, default_tenant, stock_pool, make_job, make_item, make_equipment):
        tid = default_tenant.id
        item = make_item(tid, name="Poly Sheeting", quantity="10", unit="roll")
        rig = make_equipment(tid, name="Rig 1", status="In Use")
        job = make_job(tid, materials={"openCellSets": 4, "equipment": [{"id": rig.id}]})

        result = jcs.complete_job(tid, job.id, {
            "openCellSets": 4,
            "closedCellSets": 1,
            "laborHours": 8,
            "inventory": [{"id": item.id, "quantity": 3}],
            "completedBy": "Marco",
        })

        pool = _pool(tid)
        assert pool.open_cell_sets == Decimal("6")
        assert pool.closed_cell_sets == Decimal("4")
        assert pool.lifetime_open_cell_used == Decimal("4")
        assert pool.lifetime_closed_cell_used == Decimal("1")
        assert db.session.get(InventoryItem, item.id).quantity == Decimal("7")

        logs = _logs(tid, job.id)
        assert [(row.material_type, row.quantity) for row in logs] == [
            (MATERIAL_OPEN_CELL, Decimal("-4")),
            (MATERIAL_CLOSED_CELL, Decimal("-1")),
            (MATERIAL_INVENTORY, Decimal("-3")),
        ]
        assert all(row.action == ACTION_USAGE for row in logs)
        assert all(row.logged_by == "Marco" for row in logs)
        assert all(row.customer_name == "Jane Homeowner" for row in logs)
        assert logs[2].material_id == item.id
        assert logs[2].unit == "roll"

        job = db.session.get(Job, job.id)
        assert job.completion_processed is True
        assert job.execution_status == EXEC_COMPLETED
        assert job.completed_at is not None
        assert job.actuals["openCellSets"] == 4.0
        assert job.actuals["completedBy"] == "Marco"

        assert result.completed_by == "Marco"
        assert result.equipment_ids == [rig.id]
        assert result.lifetime_open_cell_used == Decimal("4")

    def test_equipment_marked_available_with_last_seen(self, default_tenant, make_job, make_equipment):
        tid = default_tenant.id
        rig = make_equipment(tid, status="In Use")
        job = make_job(tid, materials={"equipment": [{"id": rig.id}]})

        jcs.complete_job(tid, job.id, {"completedBy": "Dana"})

        rig = db.session.get(Equipment, rig.id)
        assert rig.status == EQUIPMENT_AVAILABLE
        assert rig.last_seen_job_id == job.id
        assert rig.last_seen_date is not None
        assert rig.last_seen["jobId"] == job.id
        assert rig.last_seen["customerName"] == "Jane Homeowner"
        assert rig.last_seen["crewMember"] == "Dana"

    def test_actuals_equipment_overrides_planned(self, default_tenant, make_job, make_equipment):
        tid = default_tenant.id
        planned = make_equipment(tid, name="Planned rig")
        used = make_equipment(tid, name="Swapped rig")
        job = make_job(tid, materials={"equipment": [{"id": planned.id}]})

        result = jcs.complete_job(tid, job.id, {"equipment": [used.id]})

        assert result.equipment_ids == [used.id]
        assert db.session.get(Equipment, used.id).status == EQUIPMENT_AVAILABLE
        assert db.session.get(Equipment, planned.id).status == "In Use"

    def test_missing_equipment_skipped(self, default_tenant, make_job):
        job = make_job(default_tenant.id)
        result = jcs.complete_job(default_tenant.id, job.id, {"equipment": [9999]})
        assert result.equipment_ids == []
        assert db.session.get(Job, job.id).completion_processed is True

    def test_labor_only_completion_writes_no_logs(self, default_tenant, stock_pool, make_job):
        job = make_job(default_tenant.id)
        result = jcs.complete_job(default_tenant.id, job.id, {"laborHours": 6})
        assert result.deductions == []
        assert _logs(default_tenant.id) == []
        assert _pool(default_tenant.id).open_cell_sets == Decimal("10")

    def test_crew_name_falls_back_to_actor_then_default(self, default_tenant, stock_pool, make_job):
        tid = default_tenant.id
        j1 = make_job(tid)
        j2 = make_job(tid)

        jcs.complete_job(tid, j1.id, {"openCellSets": 1}, actor="office@acme")
        jcs.complete_job(tid, j2.id, {"openCellSets": 1})

        assert _logs(tid, j1.id)[0].logged_by == "office@acme"
        assert _logs(tid, j2.id)[0].logged_by == "Crew"

    def test_completes_in_progress_job(self, default_tenant, make_job):
        job = make_job(default_tenant.id, execution_status=EXEC_IN_PROGRESS)
        jcs.complete_job(default_tenant.id, job.id, {})
        assert db.session.get(Job, job.id).execution_status == EXEC_COMPLETED


# ── Clamping ────────────────────────────────────────────────────────────────


class TestClampAtZero:

    def test_over_reported_chemicals(self, default_tenant, stock_pool, make_job):
        tid = default_tenant.id
        job = make_job(tid)

        result = jcs.complete_job(tid, job.id, {"openCellSets": 12, "closedCellSets": 5})

        pool = _pool(tid)
        assert pool.open_cell_sets == 0
        assert pool.closed_cell_sets == 0
        assert pool.lifetime_open_cell_used == Decimal("12")
        assert pool.lifetime_closed_cell_used == Decimal("5")

        oc = result.deduction_for(MATERIAL_OPEN_CELL)
        assert oc.requested == Decimal("12")
        assert oc.applied == Decimal("10")
        assert oc.shortfall == Decimal("2")
        assert result.deduction_for(MATERIAL_CLOSED_CELL).shortfall == 0

        assert _logs(tid, job.id)[0].quantity == Decimal("-12")

    def test_empty_pool_stays_at_zero(self, default_tenant, make_job):
        job = make_job(default_tenant.id)
        jcs.complete_job(default_tenant.id, job.id, {"closedCellSets": 3})
        pool = _pool(default_tenant.id)
        assert pool.closed_cell_sets == 0
        assert pool.lifetime_closed_cell_used == Decimal("3")

    def test_over_reported_inventory(self, default_tenant, make_job, make_item):
        tid = default_tenant.id
        item = make_item(tid, quantity="2")
        job = make_job(tid)

        result = jcs.complete_job(tid, job.id, {"inventory": [{"id": item.id, "quantity": 5}]})

        assert db.session.get(InventoryItem, item.id).quantity == 0
        assert result.deduction_for(MATERIAL_INVENTORY, item.id).applied == Decimal("2")
        assert _logs(tid, job.id)[0].quantity == Decimal("-5")

    @pytest.mark.parametrize("sequence", [
        [("4", "1"), ("4", "1"), ("4", "1"), ("1", "9")],
        [("12", "0"), ("0.5", "6"), ("3", "0.25")],
        [("2.5", "2.5"), ("2.5", "2.5"), ("5.01", "0.01"), ("7", "7")],
    ])
    def test_completions_in_a_row_never_go_negative(self, default_tenant, stock_pool, make_job, sequence):
        tid = default_tenant.id
        for open_cell, closed_cell in sequence:
            job = make_job(tid)
            jcs.complete_job(tid, job.id, {"openCellSets": open_cell, "closedCellSets": closed_cell})
            pool = _pool(tid)
            assert pool.open_cell_sets >= 0
            assert pool.closed_cell_sets >= 0

        pool = _pool(tid)
        requested_open = sum(Decimal(o) for o, _c in sequence)
        requested_closed = sum(Decimal(c) for _o, c in sequence)
        assert pool.lifetime_open_cell_used == requested_open
        assert pool.lifetime_closed_cell_used == requested_closed
        assert pool.open_cell_sets == max(Decimal("10") - requested_open, Decimal("0"))
        assert pool.closed_cell_sets == max(Decimal("5") - requested_closed, Decimal("0"))

    def test_fractional_sets(self, default_tenant, stock_pool, make_job):
        job = make_job(default_tenant.id)
        jcs.complete_job(default_tenant.id, job.id, {"openCellSets": "2.75"})
        assert _pool(default_tenant.id).open_cell_sets == Decimal("7.25")

    def test_pool_created_when_tenant_has_none(self, make_tenant, make_job):
        t = make_tenant(name="No Pool", slug="no-pool")
        job = make_job(t.id)
        jcs.complete_job(t.id, job.id, {"openCellSets": 1})
        pool = _pool(t.id)
        assert pool.open_cell_sets == 0
        assert pool.lifetime_open_cell_used == Decimal("1")


# ── Exactly once ────────────────────────────────────────────────────────────


class TestDoubleSubmission:

    def test_second_submission_rejected(self, default_tenant, stock_pool, make_job, make_item):
        tid = default_tenant.id
        item = make_item(tid, quantity="10")
        job = make_job(tid)
        payload = {"openCellSets": 2, "inventory": [{"id": item.id, "quantity": 1}]}

        first = jcs.complete_job(tid, job.id, payload)
        before = _snapshot(tid, [item.id])

        with pytest.raises(AlreadyProcessedError) as exc:
            jcs.complete_job(tid, job.id, payload)

        assert exc.value.job_id == job.id
        assert exc.value.completed_at is not None
        assert _snapshot(tid, [item.id]) == before
        assert before["open"] == Decimal("8")
        assert len(first.deductions) == 2

    def test_different_payload_also_rejected(self, default_tenant, stock_pool, make_job):
        tid = default_tenant.id
        job = make_job(tid)
        jcs.complete_job(tid, job.id, {"openCellSets": 1})
        with pytest.raises(AlreadyProcessedError):
            jcs.complete_job(tid, job.id, {"openCellSets": 5})
        assert _pool(tid).open_cell_sets == Decimal("9")
        assert db.session.get(Job, job.id).actuals["openCellSets"] == 1.0


# ── Atomicity ───────────────────────────────────────────────────────────────


class TestAtomicity:

    def test_failure_mid_transaction_rolls_back_everything(
        self, monkeypatch, default_tenant, stock_pool, make_job, make_item, make_equipment
    ):
        tid = default_tenant.id
        item = make_item(tid, quantity="10")
        rig = make_equipment(tid, status="In Use")
        job = make_job(tid, materials={"equipment": [{"id": rig.id}]})
        payload = {"openCellSets": 3, "closedCellSets": 1, "inventory": [{"id": item.id, "quantity": 4}]}
        before = _snapshot(tid, [item.id])

        def _boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(jcs, "_release_equipment", _boom)
        with pytest.raises(RuntimeError):
            jcs.complete_job(tid, job.id, payload)

        assert _snapshot(tid, [item.id]) == before
        job_row = db.session.get(Job, job.id)
        assert job_row.completion_processed is False
        assert job_row.execution_status == EXEC_NOT_STARTED
        assert job_row.actuals is None
        assert db.session.get(Equipment, rig.id).status == "In Use"

        monkeypatch.undo()
        jcs.complete_job(tid, job.id, payload)
        assert _pool(tid).open_cell_sets == Decimal("7")
        assert db.session.get(InventoryItem, item.id).quantity == Decimal("6")

    def test_commit_failure_maps_to_transaction_failure(self, monkeypatch, default_tenant, stock_pool, make_job):
        tid = default_tenant.id
        job = make_job(tid)

        def _fail_commit(self):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(Session, "commit", _fail_commit)
        with pytest.raises(TransactionFailureError):
            jcs.complete_job(tid, job.id, {"openCellSets": 2})
        monkeypatch.undo()

        assert _pool(tid).open_cell_sets == Decimal("10")
        assert db.session.get(Job, job.id).completion_processed is False
        assert _logs(tid) == []

    def test_unknown_inventory_item_rejected_before_writes(self, default_tenant, stock_pool, make_job, make_item):
        tid = default_tenant.id
        item = make_item(tid, quantity="10")
        job = make_job(tid)
        before = _snapshot(tid, [item.id])

        with pytest.raises(ValidationError) as exc:
            jcs.complete_job(tid, job.id, {
                "openCellSets": 2,
                "inventory": [{"id": item.id, "quantity": 1}, {"id": 4242, "quantity": 1}],
            })

        assert "4242" in exc.value.details["inventory"]
        assert _snapshot(tid, [item.id]) == before
        assert db.session.get(Job, job.id).completion_processed is False

    def test_malformed_actuals_rejected(self, default_tenant, make_job):
        job = make_job(default_tenant.id)
        with pytest.raises(ValidationError):
            jcs.complete_job(default_tenant.id, job.id, {"openCellSets": -2})
        assert db.session.get(Job, job.id).completion_processed is False


# ── Tenant isolation ────────────────────────────────────────────────────────


class TestTenantIsolation:

    def test_missing_job(self, default_tenant):
        with pytest.raises(NotFoundError):
            jcs.complete_job(default_tenant.id, 9999, {})

    def test_other_tenants_job_not_found(self, default_tenant, other_tenant, make_job):
        job = make_job(other_tenant.id)
        with pytest.raises(NotFoundError):
            jcs.complete_job(default_tenant.id, job.id, {"openCellSets": 1})
        assert _pool(other_tenant.id).open_cell_sets == Decimal("50")
        assert db.session.get(Job, job.id).completion_processed is False

    def test_other_tenants_item_is_unknown(self, default_tenant, other_tenant, make_job, make_item):
        foreign = make_item(other_tenant.id, quantity="5")
        job = make_job(default_tenant.id)
        with pytest.raises(ValidationError):
            jcs.complete_job(default_tenant.id, job.id, {"inventory": [{"id": foreign.id, "quantity": 1}]})
        assert db.session.get(InventoryItem, foreign.id).quantity == Decimal("5")

    def test_completion_only_touches_own_pool(self, default_tenant, other_tenant, stock_pool, make_job):
        job = make_job(default_tenant.id)
        jcs.complete_job(default_tenant.id, job.id, {"openCellSets": 4})
        assert _pool(default_tenant.id).open_cell_sets == Decimal("6")
        assert _pool(other_tenant.id).open_cell_sets == Decimal("50")


# ── Start / logs ────────────────────────────────────────────────────────────


class TestStartJob:

    def test_not_started_to_in_progress(self, default_tenant, make_job):
        job = make_job(default_tenant.id)
        data = jcs.start_job(default_tenant.id, job.id)
        assert data["execution_status"] == EXEC_IN_PROGRESS

    def test_already_in_progress_unchanged(self, default_tenant, make_job):
        job = make_job(default_tenant.id, execution_status=EXEC_IN_PROGRESS)
        assert jcs.start_job(default_tenant.id, job.id)["execution_status"] == EXEC_IN_PROGRESS

    def test_completed_job_cannot_restart(self, default_tenant, make_job):
        job = make_job(default_tenant.id)
        jcs.complete_job(default_tenant.id, job.id, {})
        with pytest.raises(AlreadyProcessedError):
            jcs.start_job(default_tenant.id, job.id)


class TestListMaterialLogs:

    def test_lists_usage_rows(self, default_tenant, stock_pool, make_job):
        job = make_job(default_tenant.id)
        jcs.complete_job(default_tenant.id, job.id, {"openCellSets": 1, "closedCellSets": 2})
        rows = jcs.list_job_material_logs(default_tenant.id, job.id)
        assert [r["material_name"] for r in rows] == ["Open Cell Foam", "Closed Cell Foam"]
        assert [r["quantity"] for r in rows] == [-1.0, -2.0]
        assert rows[0]["unit"] == "Sets"

    def test_other_tenant_job(self, default_tenant, other_tenant, make_job):
        job = make_job(other_tenant.id)
        with pytest.raises(NotFoundError):
            jcs.list_job_material_logs(default_tenant.id, job.id)
