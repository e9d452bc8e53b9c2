"""
Stock service — chemical pool and inventory item counters.

Rules:
  - tenant_id is always an explicit parameter (never from g).
  - Counters are only read-then-written after the row is locked
    (``lock_stock_pool`` / ``lock_scoped_many``) inside a unit of work.
  - Deductions clamp at zero; the log records the amount as requested.
  - Restock/adjustment never touches the lifetime-used counters; those track
    crew-reported consumption only.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import select

from foamops.core.exceptions import ValidationError
from foamops.models import db
from foamops.models.base import utcnow
from foamops.models.inventory import (
    ACTION_ADJUSTMENT,
    ACTION_RESTOCK,
    MATERIAL_CLOSED_CELL,
    MATERIAL_INVENTORY,
    MATERIAL_OPEN_CELL,
    ChemicalStock,
    InventoryItem,
    MaterialLog,
)
from foamops.services.actuals import MAX_QUANTITY
from foamops.services.helpers.scoped_queries import get_scoped
from foamops.services.helpers.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

CHEMICAL_UNIT = "Sets"

# material_type → (pool column, lifetime column, display name)
CHEMICALS = {
    MATERIAL_OPEN_CELL: ("open_cell_sets", "lifetime_open_cell_used", "Open Cell Foam"),
    MATERIAL_CLOSED_CELL: ("closed_cell_sets", "lifetime_closed_cell_used", "Closed Cell Foam"),
}

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def clamp_deduction(current, requested: Decimal) -> Decimal:
    """Amount that can actually be taken: ``min(requested, current)``, never below 0."""
    current = Decimal(current or 0)
    return min(requested, max(current, _ZERO))


def lock_stock_pool(tenant_id: int) -> ChemicalStock:
    """Lock and return the tenant's chemical pool, creating an empty one if absent.

    Must be called inside a unit of work. Two tenants never share a row, so
    completions for different tenants never wait on each other here.
    """
    stmt = (
        select(ChemicalStock)
        .where(ChemicalStock.tenant_id == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    pool = db.session.execute(stmt).scalar_one_or_none()
    # provision_tenant creates the pool; concurrent first completions for an
    # unprovisioned tenant race on uq_chemical_stock_tenant and one fails.
    if pool is None:
        pool = ChemicalStock(
            tenant_id=tenant_id,
            open_cell_sets=_ZERO,
            closed_cell_sets=_ZERO,
            lifetime_open_cell_used=_ZERO,
            lifetime_closed_cell_used=_ZERO,
        )
        db.session.add(pool)
        db.session.flush()
        logger.info("Created empty chemical pool tenant_id=%s", tenant_id)
    return pool


def get_chemical_stock(tenant_id: int) -> dict:
    """Return the tenant's pool snapshot (all zeros if never stocked)."""
    pool = db.session.execute(
        select(ChemicalStock).where(ChemicalStock.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if pool is None:
        return {
            "tenant_id": tenant_id,
            "open_cell_sets": 0.0,
            "closed_cell_sets": 0.0,
            "lifetime_open_cell_used": 0.0,
            "lifetime_closed_cell_used": 0.0,
            "updated_at": None,
        }
    return pool.to_dict()


def _parse_delta(value) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError("delta must be a number", details={"delta": "must be a number"})
    try:
        delta = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError("delta must be a number", details={"delta": "must be a number"}) from exc
    if not delta.is_finite() or delta == 0:
        raise ValidationError("delta must be a non-zero number", details={"delta": "must be non-zero"})
    if abs(delta) > MAX_QUANTITY:
        raise ValidationError("delta is too large", details={"delta": f"magnitude must be <= {MAX_QUANTITY}"})
    try:
        exact = delta == delta.quantize(_CENT)
    except InvalidOperation:
        exact = False
    if not exact:
        raise ValidationError("delta has too many decimals", details={"delta": "at most two decimal places"})
    return delta


def _apply_delta(current, delta: Decimal) -> Decimal:
    """Signed change actually applied to a counter (negative side clamped)."""
    if delta > 0:
        if current + delta > MAX_QUANTITY:
            raise ValidationError(
                "restock would exceed the maximum on-hand quantity",
                details={"delta": f"resulting quantity must be <= {MAX_QUANTITY}"},
            )
        return delta
    return -clamp_deduction(current, -delta)


def _log_adjustment(tenant_id, *, material_type, material_id, material_name, unit, delta, actor, reason):
    now = utcnow()
    db.session.add(MaterialLog(
        tenant_id=tenant_id,
        log_date=now.date(),
        job_id=None,
        customer_name=reason or "Warehouse",
        material_id=material_id,
        material_name=material_name,
        material_type=material_type,
        action=ACTION_RESTOCK if delta > 0 else ACTION_ADJUSTMENT,
        quantity=delta,
        unit=unit,
        logged_by=actor,
        created_at=now,
    ))


def adjust_chemical_stock(
    tenant_id: int,
    material_type: str,
    delta,
    *,
    actor: str | None = None,
    reason: str | None = None,
) -> dict:
    """Restock (delta > 0) or correct (delta < 0) a chemical pool counter.

    Returns:
        {"material_type", "requested_delta", "applied_delta", "quantity"}

    Raises:
        ValidationError: unknown material_type or malformed delta.
        TransactionFailureError: the store could not commit.
    """
    if material_type not in CHEMICALS:
        raise ValidationError(
            f"material_type must be one of: {', '.join(sorted(CHEMICALS))}",
            details={"material_type": "unknown"},
        )
    requested = _parse_delta(delta)
    actor = actor or current_app.config.get("DEFAULT_CREW_NAME", "Crew")
    column, _lifetime, name = CHEMICALS[material_type]

    with unit_of_work("adjust_chemical_stock", tenant_id=tenant_id):
        pool = lock_stock_pool(tenant_id)
        current = Decimal(getattr(pool, column) or 0)
        applied = _apply_delta(current, requested)
        setattr(pool, column, current + applied)
        _log_adjustment(
            tenant_id,
            material_type=material_type,
            material_id=None,
            material_name=name,
            unit=CHEMICAL_UNIT,
            delta=requested,
            actor=actor,
            reason=reason,
        )
        quantity = current + applied

    logger.info(
        "Chemical stock adjusted tenant_id=%s type=%s requested=%s applied=%s",
        tenant_id, material_type, requested, applied,
        extra={"tenant_id": tenant_id},
    )
    return {
        "material_type": material_type,
        "requested_delta": float(requested),
        "applied_delta": float(applied),
        "quantity": float(quantity),
    }


def adjust_inventory_item(
    tenant_id: int,
    item_id: int,
    delta,
    *,
    actor: str | None = None,
    reason: str | None = None,
) -> dict:
    """Restock or correct an inventory item's on-hand quantity.

    Raises:
        NotFoundError: item does not exist in this tenant.
        ValidationError: malformed delta.
        TransactionFailureError: the store could not commit.
    """
    requested = _parse_delta(delta)
    actor = actor or current_app.config.get("DEFAULT_CREW_NAME", "Crew")

    with unit_of_work("adjust_inventory_item", tenant_id=tenant_id):
        item = get_scoped(InventoryItem, item_id, tenant_id=tenant_id, for_update=True)
        current = Decimal(item.quantity or 0)
        applied = _apply_delta(current, requested)
        item.quantity = current + applied
        _log_adjustment(
            tenant_id,
            material_type=MATERIAL_INVENTORY,
            material_id=item.id,
            material_name=item.name,
            unit=item.unit,
            delta=requested,
            actor=actor,
            reason=reason,
        )
        result = {
            "material_type": MATERIAL_INVENTORY,
            "material_id": item.id,
            "requested_delta": float(requested),
            "applied_delta": float(applied),
            "quantity": float(current + applied),
        }

    logger.info(
        "Inventory item adjusted tenant_id=%s item_id=%s requested=%s applied=%s",
        tenant_id, item_id, requested, applied,
        extra={"tenant_id": tenant_id},
    )
    return result
