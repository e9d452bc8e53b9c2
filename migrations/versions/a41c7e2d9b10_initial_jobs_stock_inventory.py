"""initial_jobs_stock_inventory

Creates the base schema:
  - tenants, company_settings
  - jobs                 — estimates / work orders with planned materials and crew actuals
  - chemical_stock       — one open/closed cell pool per tenant, lifetime usage counters
  - inventory_items      — unit-tracked supplies
  - equipment            — tracked assets with last-seen metadata
  - material_logs        — append-only stock movement trail

Tables created conditionally (IF NOT EXISTS semantics) so the migration can
run against a development database that already received them via
db.create_all().

Revision ID: a41c7e2d9b10
Revises:
Create Date: 2026-10-17 09:12:44.310522
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a41c7e2d9b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Tenant ────────────────────────────────────────────────────────────
    if "tenants" not in existing:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    # ── CompanySetting ────────────────────────────────────────────────────
    if "company_settings" not in existing:
        op.create_table(
            "company_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("setting_key", sa.String(length=100), nullable=False),
            sa.Column("setting_value", sa.JSON(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "setting_key", name="uq_company_setting_key"),
        )
        op.create_index("ix_company_settings_tenant_id", "company_settings", ["tenant_id"])

    # ── Job ───────────────────────────────────────────────────────────────
    if "jobs" not in existing:
        op.create_table(
            "jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("estimate_number", sa.String(length=50), nullable=True),
            sa.Column("customer_name", sa.String(length=200), nullable=True),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="Draft",
                comment="Draft | Work Order | Invoiced | Paid | Archived",
            ),
            sa.Column(
                "execution_status", sa.String(length=20), nullable=False,
                server_default="Not Started",
                comment="Not Started | In Progress | Completed",
            ),
            sa.Column("materials", sa.JSON(), nullable=False),
            sa.Column("expenses", sa.JSON(), nullable=False),
            sa.Column("total_value", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("scheduled_date", sa.Date(), nullable=True),
            sa.Column(
                "actuals", sa.JSON(), nullable=True,
                comment="Crew-reported materials and labor. Written once by the completion transaction.",
            ),
            sa.Column("completion_processed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_jobs_tenant_id", "jobs", ["tenant_id"])

    # ── ChemicalStock ─────────────────────────────────────────────────────
    if "chemical_stock" not in existing:
        op.create_table(
            "chemical_stock",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column(
                "tenant_id", sa.Integer(), nullable=False,
                comment="One chemical pool per tenant.",
            ),
            sa.Column("open_cell_sets", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("closed_cell_sets", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("lifetime_open_cell_used", sa.Numeric(precision=14, scale=2), nullable=False, server_default="0"),
            sa.Column("lifetime_closed_cell_used", sa.Numeric(precision=14, scale=2), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", name="uq_chemical_stock_tenant"),
        )
        op.create_index("ix_chemical_stock_tenant_id", "chemical_stock", ["tenant_id"])

    # ── InventoryItem ─────────────────────────────────────────────────────
    if "inventory_items" not in existing:
        op.create_table(
            "inventory_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("quantity", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("unit", sa.String(length=30), nullable=False, server_default="ea"),
            sa.Column("unit_cost", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("reorder_point", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_inventory_items_tenant_id", "inventory_items", ["tenant_id"])

    # ── Equipment ─────────────────────────────────────────────────────────
    if "equipment" not in existing:
        op.create_table(
            "equipment",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="Available",
                comment="Available | In Use | Maintenance | Lost",
            ),
            sa.Column(
                "last_seen", sa.JSON(), nullable=True,
                comment="{jobId, customerName, date, crewMember} of the last job that used it.",
            ),
            sa.Column("last_seen_job_id", sa.Integer(), nullable=True),
            sa.Column("last_seen_date", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["last_seen_job_id"], ["jobs.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_equipment_tenant_id", "equipment", ["tenant_id"])

    # ── MaterialLog ───────────────────────────────────────────────────────
    if "material_logs" not in existing:
        op.create_table(
            "material_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("log_date", sa.Date(), nullable=False),
            sa.Column("job_id", sa.Integer(), nullable=True),
            sa.Column("customer_name", sa.String(length=200), nullable=False),
            sa.Column(
                "material_id", sa.Integer(), nullable=True,
                comment="inventory_items.id for Inventory rows; NULL for chemical rows.",
            ),
            sa.Column("material_name", sa.String(length=200), nullable=False),
            sa.Column("material_type", sa.String(length=20), nullable=False),
            sa.Column("action", sa.String(length=20), nullable=False, server_default="Usage"),
            sa.Column(
                "quantity", sa.Numeric(precision=12, scale=2), nullable=False,
                comment="Signed: negative for usage, positive for restock.",
            ),
            sa.Column("unit", sa.String(length=30), nullable=False),
            sa.Column("logged_by", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["job_id"], ["jobs.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_material_logs_tenant_id", "material_logs", ["tenant_id"])
        op.create_index("ix_material_logs_tenant_job", "material_logs", ["tenant_id", "job_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    if "material_logs" in existing:
        op.drop_index("ix_material_logs_tenant_job", table_name="material_logs")
        op.drop_index("ix_material_logs_tenant_id", table_name="material_logs")
        op.drop_table("material_logs")

    if "equipment" in existing:
        op.drop_index("ix_equipment_tenant_id", table_name="equipment")
        op.drop_table("equipment")

    if "inventory_items" in existing:
        op.drop_index("ix_inventory_items_tenant_id", table_name="inventory_items")
        op.drop_table("inventory_items")

    if "chemical_stock" in existing:
        op.drop_index("ix_chemical_stock_tenant_id", table_name="chemical_stock")
        op.drop_table("chemical_stock")

    if "jobs" in existing:
        op.drop_index("ix_jobs_tenant_id", table_name="jobs")
        op.drop_table("jobs")

    if "company_settings" in existing:
        op.drop_index("ix_company_settings_tenant_id", table_name="company_settings")
        op.drop_table("company_settings")

    if "tenants" in existing:
        op.drop_table("tenants")
