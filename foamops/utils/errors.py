"""JSON error bodies for the Foam Ops API.

Every failure leaves the service as ``{"error", "code", "details"?}``. The
blueprint error handlers translate service exceptions through ``api_error``;
the tenant middleware calls it directly when it rejects a request:

    return api_error(E.ALREADY_PROCESSED, "Job 12 already completed",
                     details={"job_id": 12, "completed_at": "..."})
    return api_error(E.TRANSACTION_FAILURE, "could not commit",
                     details={"retryable": True})
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes the crew app and office UI switch on."""

    # 400 when a required input is absent, 422 when present but malformed
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    NOT_FOUND = "ERR_NOT_FOUND"

    # 409: slug taken / job completion already applied
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    ALREADY_PROCESSED = "ERR_ALREADY_PROCESSED"

    # unknown or deactivated tenant
    FORBIDDEN = "ERR_FORBIDDEN"

    # 503 is retryable; nothing was written
    TRANSACTION_FAILURE = "ERR_TRANSACTION_FAILURE"
    INTERNAL = "ERR_INTERNAL"


STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.ALREADY_PROCESSED: 409,
    E.FORBIDDEN: 403,
    E.TRANSACTION_FAILURE: 503,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for a Flask view or error handler.

    ``status`` overrides the code's usual status (unknown codes fall back to
    400). ``details`` is omitted from the body when empty.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_BY_CODE.get(code, 400)
