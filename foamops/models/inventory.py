"""
Inventory data models.

Four models:
  ChemicalStock  — the tenant's foam chemical pool (one row per tenant) with
                   lifetime usage counters.
  InventoryItem  — general, unit-tracked supplies (tape, poly, blades, ...).
  Equipment      — tracked assets (rigs, generators) with last-seen metadata.
  MaterialLog    — append-only audit trail of every stock movement.

ChemicalStock and InventoryItem rows are shared by every job of a tenant and
are only mutated inside a locked transaction (see services.stock_service).
"""

from __future__ import annotations

from foamops.models import db
from foamops.models.base import TenantModel, as_float, utcnow

MATERIAL_OPEN_CELL = "OpenCell"
MATERIAL_CLOSED_CELL = "ClosedCell"
MATERIAL_INVENTORY = "Inventory"
MATERIAL_EQUIPMENT = "Equipment"

ACTION_USAGE = "Usage"
ACTION_ADJUSTMENT = "Adjustment"
ACTION_RESTOCK = "Restock"

EQUIPMENT_AVAILABLE = "Available"


class ChemicalStock(db.Model):
    """Foam chemical pool for one tenant.

    Invariants:
      - open_cell_sets / closed_cell_sets never drop below zero.
      - lifetime_*_used only ever increase.
    """

    __tablename__ = "chemical_stock"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", name="uq_chemical_stock_tenant"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="One chemical pool per tenant.",
    )
    open_cell_sets = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    closed_cell_sets = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    lifetime_open_cell_used = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    lifetime_closed_cell_used = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "open_cell_sets": as_float(self.open_cell_sets),
            "closed_cell_sets": as_float(self.closed_cell_sets),
            "lifetime_open_cell_used": as_float(self.lifetime_open_cell_used),
            "lifetime_closed_cell_used": as_float(self.lifetime_closed_cell_used),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class InventoryItem(TenantModel):
    """A named general supply with an on-hand quantity (never negative)."""

    __tablename__ = "inventory_items"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit = db.Column(db.String(30), nullable=False, default="ea")
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    reorder_point = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "quantity": as_float(self.quantity),
            "unit": self.unit,
            "unit_cost": as_float(self.unit_cost),
            "reorder_point": as_float(self.reorder_point),
        }


class Equipment(TenantModel):
    """Tracked asset. Status: Available | In Use | Maintenance | Lost."""

    __tablename__ = "equipment"

    VALID_STATUSES = frozenset({EQUIPMENT_AVAILABLE, "In Use", "Maintenance", "Lost"})

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=EQUIPMENT_AVAILABLE)
    last_seen = db.Column(
        db.JSON,
        nullable=True,
        comment="{jobId, customerName, date, crewMember} of the last job that used it.",
    )
    last_seen_job_id = db.Column(
        db.Integer,
        db.ForeignKey("jobs.id", ondelete="SET NULL"),
        nullable=True,
    )
    last_seen_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "status": self.status,
            "last_seen": self.last_seen,
            "last_seen_job_id": self.last_seen_job_id,
            "last_seen_date": self.last_seen_date.isoformat() if self.last_seen_date else None,
        }


class MaterialLog(TenantModel):
    """Immutable stock-movement record.

    ``quantity`` is signed: negative for consumption, positive for restock.
    Usage rows record what the crew reported, which can exceed what the pool
    actually held; the difference is the reconciliation signal.
    """

    __tablename__ = "material_logs"
    __table_args__ = (
        db.Index("ix_material_logs_tenant_job", "tenant_id", "job_id"),
    )

    VALID_MATERIAL_TYPES = frozenset({
        MATERIAL_OPEN_CELL, MATERIAL_CLOSED_CELL, MATERIAL_INVENTORY, MATERIAL_EQUIPMENT,
    })
    VALID_ACTIONS = frozenset({ACTION_USAGE, ACTION_ADJUSTMENT, ACTION_RESTOCK})

    id = db.Column(db.Integer, primary_key=True)
    log_date = db.Column(db.Date, nullable=False)
    job_id = db.Column(
        db.Integer,
        db.ForeignKey("jobs.id", ondelete="SET NULL"),
        nullable=True,
    )
    customer_name = db.Column(db.String(200), nullable=False, default="Unknown")
    material_id = db.Column(
        db.Integer,
        nullable=True,
        comment="inventory_items.id for Inventory rows; NULL for chemical rows.",
    )
    material_name = db.Column(db.String(200), nullable=False)
    material_type = db.Column(db.String(20), nullable=False)
    action = db.Column(db.String(20), nullable=False, default=ACTION_USAGE)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit = db.Column(db.String(30), nullable=False)
    logged_by = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "date": self.log_date.isoformat() if self.log_date else None,
            "job_id": self.job_id,
            "customer_name": self.customer_name,
            "material_id": self.material_id,
            "material_name": self.material_name,
            "material_type": self.material_type,
            "action": self.action,
            "quantity": as_float(self.quantity),
            "unit": self.unit,
            "logged_by": self.logged_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
