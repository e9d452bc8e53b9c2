"""
Tenant provisioning and settings.

A new contractor company gets, in one transaction:
  - the tenant row
  - an empty chemical pool
  - default company settings (costs, yields, expense defaults)
"""

import logging
from decimal import Decimal

from sqlalchemy import select

from foamops.core.exceptions import ConflictError, ValidationError
from foamops.models import db
from foamops.models.inventory import ChemicalStock
from foamops.models.tenant import CompanySetting, Tenant
from foamops.services.helpers.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "costs": {"openCell": 2000, "closedCell": 2600, "laborRate": 85},
    "yields": {"openCell": 16000, "closedCell": 4000, "openCellStrokes": 6600, "closedCellStrokes": 6600},
    "expenses": {
        "manHours": 0,
        "laborRate": 85,
        "tripCharge": 0,
        "fuelSurcharge": 0,
        "other": {"description": "", "amount": 0},
    },
}


def provision_tenant(data):
    """Create a tenant with its chemical pool and default settings.

    Args:
        data: {"name": str, "slug": str}

    Returns:
        Tenant dict.

    Raises:
        ValidationError: name or slug missing.
        ConflictError: slug already taken.
    """
    name = (data.get("name") or "").strip()
    slug = (data.get("slug") or "").strip().lower()
    if not name or not slug:
        raise ValidationError("name and slug are required")

    with unit_of_work("provision_tenant"):
        if Tenant.query.filter_by(slug=slug).first():
            raise ConflictError("Tenant", "slug", slug)

        tenant = Tenant(name=name, slug=slug, is_active=True)
        db.session.add(tenant)
        db.session.flush()

        db.session.add(ChemicalStock(
            tenant_id=tenant.id,
            open_cell_sets=Decimal("0"),
            closed_cell_sets=Decimal("0"),
            lifetime_open_cell_used=Decimal("0"),
            lifetime_closed_cell_used=Decimal("0"),
        ))
        for key, value in DEFAULT_SETTINGS.items():
            db.session.add(CompanySetting(tenant_id=tenant.id, setting_key=key, setting_value=dict(value)))
        payload = tenant.to_dict()

    logger.info("Provisioned tenant %s (id=%d)", slug, payload["id"])
    return payload


def get_setting(tenant_id: int, key: str) -> dict:
    """Return a tenant setting, falling back to the provisioning default."""
    row = db.session.execute(
        select(CompanySetting).where(
            CompanySetting.tenant_id == tenant_id,
            CompanySetting.setting_key == key,
        )
    ).scalar_one_or_none()
    if row is None or not row.setting_value:
        return dict(DEFAULT_SETTINGS.get(key, {}))
    return row.setting_value
