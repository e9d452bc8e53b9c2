"""
Foam Ops — blueprint registry and shared request helpers.
"""

from flask import g

from foamops.utils.errors import E, api_error


def tenant_required():
    """Return (tenant_id, None) for the current request or (None, error_response).

    The tenant comes from the tenant-context middleware (X-Tenant-ID).
    """
    tenant_id = getattr(g, "tenant_id", None)
    if tenant_id is None:
        return None, api_error(E.VALIDATION_REQUIRED, "X-Tenant-ID header is required")
    return tenant_id, None


def current_actor():
    """Caller name forwarded by the identity layer (X-User), or None."""
    return getattr(g, "actor", None)


def register_error_handlers(bp, logger):
    """Map the service-layer exception hierarchy to JSON responses on ``bp``."""
    from foamops.core.exceptions import (
        AlreadyProcessedError,
        ConflictError,
        NotFoundError,
        TransactionFailureError,
        ValidationError,
    )

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @bp.errorhandler(AlreadyProcessedError)
    def _handle_already_processed(error: AlreadyProcessedError):
        return api_error(
            E.ALREADY_PROCESSED,
            str(error),
            details={
                "job_id": error.job_id,
                "completed_at": error.completed_at.isoformat() if error.completed_at else None,
            },
        )

    @bp.errorhandler(TransactionFailureError)
    def _handle_transaction_failure(error: TransactionFailureError):
        return api_error(E.TRANSACTION_FAILURE, str(error), details={"retryable": True})

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s", bp.name)
        return api_error(E.INTERNAL, "Internal server error")
