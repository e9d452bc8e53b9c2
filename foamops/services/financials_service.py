"""
Job profit & loss.

Costs come from the tenant's ``costs`` setting (per-set chemical prices and
labor rate); quantities come from the job's crew actuals, so figures are only
meaningful once the job has been completed. Read-only: nothing is written.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from foamops.models.inventory import InventoryItem
from foamops.models.job import Job
from foamops.services.helpers.scoped_queries import get_scoped
from foamops.services.tenant_service import DEFAULT_SETTINGS, get_setting

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _dec(value, default="0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return Decimal(default)


def _money(value: Decimal) -> float:
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _inventory_cost(tenant_id: int, actuals: dict) -> Decimal:
    usage = {}
    for entry in actuals.get("inventory") or []:
        if isinstance(entry, dict) and entry.get("id") is not None:
            usage[int(entry["id"])] = usage.get(int(entry["id"]), Decimal("0")) + _dec(entry.get("quantity"))
    if not usage:
        return Decimal("0")
    items = InventoryItem.query_for_tenant(tenant_id).filter(InventoryItem.id.in_(list(usage))).all()
    return sum((_dec(item.unit_cost) * usage[item.id] for item in items), Decimal("0"))


def calculate_job_financials(tenant_id: int, job_id: int) -> dict:
    """Return revenue, cost breakdown, net profit and margin for a job.

    labor hours: actual laborHours, else the planned ``manHours`` expense, else 0.
    misc: trip charge + fuel surcharge from the job's expenses.

    Raises:
        NotFoundError: job does not exist in this tenant.
    """
    job = get_scoped(Job, job_id, tenant_id=tenant_id)
    costs = get_setting(tenant_id, "costs")
    defaults = DEFAULT_SETTINGS["costs"]
    actuals = job.actuals or {}
    expenses = job.expenses or {}

    open_cell_cost = _dec(costs.get("openCell"), defaults["openCell"])
    closed_cell_cost = _dec(costs.get("closedCell"), defaults["closedCell"])
    labor_rate = _dec(costs.get("laborRate"), defaults["laborRate"])

    chemical = (
        _dec(actuals.get("openCellSets")) * open_cell_cost
        + _dec(actuals.get("closedCellSets")) * closed_cell_cost
    )
    hours = actuals.get("laborHours")
    if hours is None:
        hours = expenses.get("manHours")
    labor = _dec(hours) * labor_rate
    inventory = _inventory_cost(tenant_id, actuals)
    misc = _dec(expenses.get("tripCharge")) + _dec(expenses.get("fuelSurcharge"))

    revenue = _dec(job.total_value)
    total_cogs = chemical + labor + inventory + misc
    net_profit = revenue - total_cogs
    margin = (net_profit / revenue * 100) if revenue > 0 else Decimal("0")
    logger.debug("Financials tenant_id=%s job_id=%s cogs=%s net=%s", tenant_id, job_id, total_cogs, net_profit)

    return {
        "job_id": job.id,
        "completed": bool(job.completion_processed),
        "revenue": _money(revenue),
        "chemical_cost": _money(chemical),
        "labor_cost": _money(labor),
        "inventory_cost": _money(inventory),
        "misc_cost": _money(misc),
        "total_cogs": _money(total_cogs),
        "net_profit": _money(net_profit),
        "margin_percent": _money(margin),
    }
