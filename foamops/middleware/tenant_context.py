"""
Tenant Context Middleware — binds each API request to one tenant.

Authentication happens upstream (the hosted identity layer / API gateway),
which forwards the resolved identity as headers:

    X-Tenant-ID   integer tenant (company) id
    X-User        display name of the caller (crew member, office user)

This middleware:
  1. verifies the tenant exists and is active
  2. sets g.tenant / g.tenant_id for downstream handlers
  3. sets g.actor for audit columns (logged_by)

Requests without X-Tenant-ID pass through with g.tenant_id = None; tenant
scoped blueprints reject them with 400.
"""

import logging

from flask import g, request

from foamops.models import db
from foamops.models.tenant import Tenant
from foamops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip tenant context
TENANT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.tenant = None
        g.tenant_id = None
        g.actor = (request.headers.get("X-User") or "").strip() or None

        if not request.path.startswith("/api/v1/"):
            return None

        for prefix in TENANT_SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        raw = (request.headers.get("X-Tenant-ID") or "").strip()
        if not raw:
            return None
        if not raw.isdigit():
            return api_error(E.VALIDATION_INVALID, "X-Tenant-ID must be an integer", status=400)

        tenant_id = int(raw)
        tenant = db.session.get(Tenant, tenant_id)
        if tenant is None:
            logger.warning("Tenant id %d not found", tenant_id)
            return api_error(E.FORBIDDEN, "Tenant not found")
        if not tenant.is_active:
            logger.warning("Tenant id %d is deactivated", tenant_id)
            return api_error(E.FORBIDDEN, "Tenant account is deactivated")

        g.tenant = tenant
        g.tenant_id = tenant.id
        return None

    logger.info("Tenant context middleware installed")
