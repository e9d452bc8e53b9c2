"""
Tenant (company) and per-tenant settings.

A tenant is one contractor company. Every job, stock pool, inventory item,
piece of equipment and usage log row belongs to exactly one tenant.
"""

from foamops.models import db
from foamops.models.base import TenantModel, utcnow


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class CompanySetting(TenantModel):
    """Key-value settings for a tenant (costs, yields, expense defaults).

    ``setting_value`` is free-form JSON; readers supply their own defaults for
    keys that are absent.
    """

    __tablename__ = "company_settings"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "setting_key", name="uq_company_setting_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(100), nullable=False)
    setting_value = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "setting_key": self.setting_key,
            "setting_value": self.setting_value or {},
        }
