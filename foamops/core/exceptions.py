"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and get
consistent HTTP status codes everywhere. No service returns error tuples.

Usage:
    from foamops.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Job", resource_id=42)
    raise ValidationError("openCellSets must be >= 0", details={"openCellSets": "negative"})
"""

from __future__ import annotations

from datetime import datetime


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Security note: Used for BOTH genuinely missing records AND cross-tenant
    access attempts. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "Job", "InventoryItem").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        tenant_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or violates a business rule.

    Always raised before any row is mutated, so the caller can correct the
    payload and resubmit. Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value (truncated in HTTP response; full in logs).
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AlreadyProcessedError(Exception):
    """Raised when a job's completion has already been applied.

    Surfaced as an explicit conflict (HTTP 409), never as a silent success.
    ``completed_at`` lets a client that retried after a dropped response
    recognise that the earlier submission went through.
    """

    def __init__(self, job_id: int, completed_at: datetime | None = None) -> None:
        self.job_id = job_id
        self.completed_at = completed_at
        super().__init__(f"Job id={job_id} already completed")


class TransactionFailureError(Exception):
    """Raised when the database could not commit the unit of work.

    Deadlocks, lock timeouts and dropped connections all land here. Nothing
    was persisted, so the whole call is safe to retry. Maps to HTTP 503.
    """

    def __init__(self, message: str = "Transaction could not be committed") -> None:
        super().__init__(message)
