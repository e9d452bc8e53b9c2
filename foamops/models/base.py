"""
TenantModel — Abstract base class for tenant-scoped models.

All models that need tenant isolation should inherit from TenantModel
instead of db.Model directly. This adds:
  - tenant_id FK column with index
  - query_for_tenant(tenant_id) classmethod
"""

from datetime import datetime, timezone

from foamops.models import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TenantModel(db.Model):
    """Abstract base for tenant-scoped tables."""
    __abstract__ = True

    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    @classmethod
    def query_for_tenant(cls, tenant_id):
        """Return a query filtered by tenant_id."""
        return cls.query.filter_by(tenant_id=tenant_id)


def as_float(value):
    """Numeric column value → float for JSON payloads (None stays None)."""
    return float(value) if value is not None else None
