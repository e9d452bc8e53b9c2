"""
Tenant-scoped query helpers.

Every get-by-id in the service layer MUST go through these helpers instead of
Model.query.get(pk) or db.session.get(Model, pk). Direct .get() calls bypass
tenant isolation.

Usage:
    job = get_scoped(Job, job_id, tenant_id=tenant_id)

    # Row lock for read-modify-write inside a unit of work
    job = get_scoped(Job, job_id, tenant_id=tenant_id, for_update=True)

Cross-tenant access is indistinguishable from a missing record: both raise
NotFoundError.
"""

import logging

from sqlalchemy import select

from foamops.core.exceptions import NotFoundError
from foamops.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk: int, *, tenant_id: int, for_update: bool = False):
    """Fetch a single entity by PK within a tenant.

    Args:
        model: SQLAlchemy model class with ``id`` and ``tenant_id`` columns.
        pk: Primary key value to look up.
        tenant_id: Owning tenant. Required; unscoped lookups are refused.
        for_update: Take a row lock (``SELECT ... FOR UPDATE``) and refresh
                    any copy already in the identity map. Only meaningful
                    inside a transaction that will mutate the row.

    Returns:
        The model instance if found within the tenant.

    Raises:
        ValueError: If tenant_id is None or the model has no tenant_id column.
        NotFoundError: If the entity does not exist OR belongs to a different
                       tenant. The two cases are intentionally indistinguishable.
    """
    if tenant_id is None:
        raise ValueError(
            f"{model.__name__} id={pk} requires a tenant_id scope. "
            "Unscoped lookups are forbidden — they bypass tenant isolation."
        )
    if not hasattr(model, "tenant_id"):
        raise ValueError(f"{model.__name__} has no tenant_id column; cannot scope lookup.")

    stmt = select(model).where(model.id == pk, model.tenant_id == tenant_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)

    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug("get_scoped: %s id=%s not found for tenant %s", model.__name__, pk, tenant_id)
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    return result


def lock_scoped_many(model, pks, *, tenant_id: int) -> dict:
    """Row-lock a set of tenant rows in ascending id order.

    Fixed ordering keeps two transactions that touch overlapping rows from
    deadlocking. Returns ``{id: instance}`` for the rows that exist in the
    tenant; callers decide what a missing id means.
    """
    ids = sorted(set(pks))
    if not ids:
        return {}
    stmt = (
        select(model)
        .where(model.id.in_(ids), model.tenant_id == tenant_id)
        .order_by(model.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {row.id: row for row in db.session.execute(stmt).scalars()}
