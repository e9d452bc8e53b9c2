"""
Job completion service — the crew "submit" transaction.

``complete_job`` applies a crew's reported actuals to a job and draws the
tenant's shared stock down, exactly once, in a single unit of work:

  1. lock the job row, re-check ``completion_processed``
  2. deduct open/closed cell sets from the chemical pool (clamped at zero)
  3. add the requested (unclamped) amounts to the lifetime-used counters
  4. deduct each consumed inventory item (clamped at zero)
  5. mark the job's equipment Available / last seen on this job
  6. append one usage log per consumed material, quantity = -requested
  7. store actuals, set execution_status=Completed, completion_processed=True
  8. commit — or roll everything back

Rules:
  - tenant_id is always an explicit parameter (never from g).
  - Row locks are taken in a fixed order: job → chemical pool → inventory
    items (ascending id) → equipment (ascending id).
  - db.session.commit() happens only through unit_of_work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from flask import current_app

from foamops.core.exceptions import AlreadyProcessedError, ValidationError
from foamops.models import db
from foamops.models.base import utcnow
from foamops.models.inventory import (
    ACTION_USAGE,
    EQUIPMENT_AVAILABLE,
    MATERIAL_CLOSED_CELL,
    MATERIAL_INVENTORY,
    MATERIAL_OPEN_CELL,
    Equipment,
    InventoryItem,
    MaterialLog,
)
from foamops.models.job import EXEC_COMPLETED, EXEC_IN_PROGRESS, EXEC_NOT_STARTED, Job
from foamops.services.actuals import Actuals, parse_actuals
from foamops.services.helpers.scoped_queries import get_scoped, lock_scoped_many
from foamops.services.helpers.unit_of_work import unit_of_work
from foamops.services.stock_service import CHEMICAL_UNIT, CHEMICALS, clamp_deduction, lock_stock_pool

logger = logging.getLogger(__name__)


@dataclass
class MaterialDeduction:
    """What one material was asked for versus what the stock could supply."""
    material_type: str
    material_id: int | None
    material_name: str
    unit: str
    requested: Decimal
    applied: Decimal
    remaining: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.applied

    def to_dict(self) -> dict:
        return {
            "material_type": self.material_type,
            "material_id": self.material_id,
            "material_name": self.material_name,
            "unit": self.unit,
            "requested": float(self.requested),
            "applied": float(self.applied),
            "shortfall": float(self.shortfall),
            "remaining": float(self.remaining),
        }


@dataclass
class CompletionResult:
    job_id: int
    tenant_id: int
    completed_by: str
    completed_at: datetime
    deductions: list[MaterialDeduction] = field(default_factory=list)
    equipment_ids: list[int] = field(default_factory=list)
    lifetime_open_cell_used: Decimal = Decimal("0")
    lifetime_closed_cell_used: Decimal = Decimal("0")

    def deduction_for(self, material_type: str, material_id: int | None = None) -> MaterialDeduction | None:
        for d in self.deductions:
            if d.material_type == material_type and d.material_id == material_id:
                return d
        return None

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "tenant_id": self.tenant_id,
            "completed_by": self.completed_by,
            "completed_at": self.completed_at.isoformat(),
            "deductions": [d.to_dict() for d in self.deductions],
            "equipment_ids": list(self.equipment_ids),
            "lifetime": {
                "open_cell_used": float(self.lifetime_open_cell_used),
                "closed_cell_used": float(self.lifetime_closed_cell_used),
            },
        }


# ── Steps ────────────────────────────────────────────────────────────────────


def _deduct_chemicals(pool, actuals: Actuals) -> list[MaterialDeduction]:
    requested_by_type = {
        MATERIAL_OPEN_CELL: actuals.open_cell_sets,
        MATERIAL_CLOSED_CELL: actuals.closed_cell_sets,
    }
    deductions = []
    for material_type, requested in requested_by_type.items():
        if not requested:
            continue
        column, lifetime_column, name = CHEMICALS[material_type]
        current = Decimal(getattr(pool, column) or 0)
        applied = clamp_deduction(current, requested)
        setattr(pool, column, current - applied)
        setattr(pool, lifetime_column, Decimal(getattr(pool, lifetime_column) or 0) + requested)
        deductions.append(MaterialDeduction(
            material_type=material_type,
            material_id=None,
            material_name=name,
            unit=CHEMICAL_UNIT,
            requested=requested,
            applied=applied,
            remaining=current - applied,
        ))
    return deductions


def _deduct_inventory(items: dict, actuals: Actuals) -> list[MaterialDeduction]:
    deductions = []
    for usage in actuals.inventory:
        item = items[usage.item_id]
        current = Decimal(item.quantity or 0)
        applied = clamp_deduction(current, usage.quantity)
        item.quantity = current - applied
        deductions.append(MaterialDeduction(
            material_type=MATERIAL_INVENTORY,
            material_id=item.id,
            material_name=item.name,
            unit=item.unit,
            requested=usage.quantity,
            applied=applied,
            remaining=current - applied,
        ))
    return deductions


def _release_equipment(equipment: list, job: Job, crew: str, now: datetime) -> None:
    for eq in equipment:
        eq.status = EQUIPMENT_AVAILABLE
        eq.last_seen_job_id = job.id
        eq.last_seen_date = now
        eq.last_seen = {
            "jobId": job.id,
            "customerName": job.customer_name,
            "date": now.isoformat(),
            "crewMember": crew,
        }


def _record_usage(job: Job, deductions: list[MaterialDeduction], crew: str, now: datetime) -> None:
    for d in deductions:
        db.session.add(MaterialLog(
            tenant_id=job.tenant_id,
            log_date=now.date(),
            job_id=job.id,
            customer_name=job.customer_name or "Unknown",
            material_id=d.material_id,
            material_name=d.material_name,
            material_type=d.material_type,
            action=ACTION_USAGE,
            quantity=-d.requested,
            unit=d.unit,
            logged_by=crew,
            created_at=now,
        ))


# ── Public API ───────────────────────────────────────────────────────────────


def complete_job(tenant_id: int, job_id: int, actuals, *, actor: str | None = None) -> CompletionResult:
    """Apply crew actuals to a job and deplete shared stock, exactly once.

    Args:
        tenant_id: Tenant resolved by the identity layer.
        job_id:    Job to complete.
        actuals:   ``Actuals`` record, or the raw camelCase payload (validated
                   here before anything is touched).
        actor:     Fallback crew name when the payload carries no completedBy.

    Returns:
        CompletionResult with requested vs applied amounts per material.

    Raises:
        ValidationError: malformed actuals, or inventory ids not in this tenant.
        NotFoundError: job does not exist in this tenant.
        AlreadyProcessedError: completion was already applied.
        TransactionFailureError: the store could not commit; safe to retry.
    """
    if not isinstance(actuals, Actuals):
        actuals = parse_actuals(actuals)
    crew = actuals.completed_by or actor or current_app.config.get("DEFAULT_CREW_NAME", "Crew")

    with unit_of_work("complete_job", tenant_id=tenant_id, job_id=job_id):
        job = get_scoped(Job, job_id, tenant_id=tenant_id, for_update=True)
        if job.completion_processed:
            logger.info(
                "Duplicate completion rejected tenant_id=%s job_id=%s",
                tenant_id, job_id,
                extra={"tenant_id": tenant_id, "job_id": job_id},
            )
            raise AlreadyProcessedError(job.id, job.completed_at)

        pool = lock_stock_pool(tenant_id)
        items = lock_scoped_many(
            InventoryItem, [u.item_id for u in actuals.inventory], tenant_id=tenant_id
        )
        missing = [u.item_id for u in actuals.inventory if u.item_id not in items]
        if missing:
            raise ValidationError(
                "Unknown inventory items",
                details={"inventory": f"not found: {', '.join(str(i) for i in missing)}"},
            )

        equipment_ids = (
            list(actuals.equipment_ids) if actuals.equipment_ids is not None
            else job.planned_equipment_ids()
        )
        equipment = lock_scoped_many(Equipment, equipment_ids, tenant_id=tenant_id)
        skipped = [eq_id for eq_id in equipment_ids if eq_id not in equipment]
        if skipped:
            logger.warning(
                "Equipment not found, last-seen not updated tenant_id=%s job_id=%s ids=%s",
                tenant_id, job_id, skipped,
                extra={"tenant_id": tenant_id, "job_id": job_id},
            )

        now = utcnow()
        deductions = _deduct_chemicals(pool, actuals)
        deductions += _deduct_inventory(items, actuals)
        _release_equipment(list(equipment.values()), job, crew, now)
        _record_usage(job, deductions, crew, now)

        job.actuals = actuals.to_payload()
        job.execution_status = EXEC_COMPLETED
        job.completion_processed = True
        job.completed_at = now

        result = CompletionResult(
            job_id=job.id,
            tenant_id=tenant_id,
            completed_by=crew,
            completed_at=now,
            deductions=deductions,
            equipment_ids=sorted(equipment),
            lifetime_open_cell_used=Decimal(pool.lifetime_open_cell_used or 0),
            lifetime_closed_cell_used=Decimal(pool.lifetime_closed_cell_used or 0),
        )

    shortfalls = [d for d in deductions if d.shortfall > 0]
    if shortfalls:
        logger.warning(
            "Reported usage exceeded stock tenant_id=%s job_id=%s materials=%s",
            tenant_id, job_id, [d.material_name for d in shortfalls],
            extra={"tenant_id": tenant_id, "job_id": job_id},
        )
    logger.info(
        "Job completed tenant_id=%s job_id=%s by=%s materials=%d",
        tenant_id, job_id, crew, len(deductions),
        extra={"tenant_id": tenant_id, "job_id": job_id},
    )
    return result


def start_job(tenant_id: int, job_id: int) -> dict:
    """Advance execution_status Not Started → In Progress.

    Already-started jobs are returned unchanged.

    Raises:
        NotFoundError: job does not exist in this tenant.
        AlreadyProcessedError: job is already completed.
    """
    with unit_of_work("start_job", tenant_id=tenant_id, job_id=job_id):
        job = get_scoped(Job, job_id, tenant_id=tenant_id, for_update=True)
        if job.completion_processed or job.execution_status == EXEC_COMPLETED:
            raise AlreadyProcessedError(job.id, job.completed_at)
        if job.execution_status == EXEC_NOT_STARTED:
            job.execution_status = EXEC_IN_PROGRESS
            logger.info("Job started tenant_id=%s job_id=%s", tenant_id, job_id)
        payload = job.to_dict()
    return payload


def list_job_material_logs(tenant_id: int, job_id: int) -> list[dict]:
    """Usage log rows written for a job, oldest first."""
    get_scoped(Job, job_id, tenant_id=tenant_id)
    rows = (
        MaterialLog.query_for_tenant(tenant_id)
        .filter_by(job_id=job_id)
        .order_by(MaterialLog.id)
        .all()
    )
    return [r.to_dict() for r in rows]
