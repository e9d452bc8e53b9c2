"""
Unit-of-work helper — one commit or one rollback, never a partial write.

Replaces the try/commit/except/rollback block every mutating service would
otherwise repeat:

    with unit_of_work("complete_job", tenant_id=tid, job_id=jid):
        job = get_scoped(Job, jid, tenant_id=tid, for_update=True)
        ...

Outcome mapping:
  body raises anything      → rollback, re-raise unchanged
  DBAPIError (incl. commit) → rollback, TransactionFailureError (retryable)
  body finishes             → commit
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError

from foamops.core.exceptions import TransactionFailureError
from foamops.models import db

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(operation: str, **log_ctx):
    """Run the block in a single transaction on ``db.session``.

    Args:
        operation: Short name used in log lines.
        **log_ctx: Extra structured fields (tenant_id, job_id, ...) attached to
                   failure log records.
    """
    try:
        yield db.session
        db.session.commit()
    except DBAPIError as exc:
        db.session.rollback()
        logger.warning(
            "%s rolled back: database error %s",
            operation, type(exc.orig).__name__ if exc.orig is not None else type(exc).__name__,
            extra=log_ctx,
        )
        raise TransactionFailureError(f"{operation} could not be committed; retry the request") from exc
    except BaseException:
        # Includes client aborts / interpreter shutdown: nothing may be left pending.
        db.session.rollback()
        raise
