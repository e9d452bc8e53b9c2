"""
Jobs blueprint — crew workflow endpoints.

Endpoints (prefix /api/v1, tenant from X-Tenant-ID):
  POST /jobs/<job_id>/start          Not Started → In Progress
  POST /jobs/<job_id>/complete       crew submit: apply actuals, deplete stock
  GET  /jobs/<job_id>/material-logs  usage rows written for the job
  GET  /jobs/<job_id>/financials     P&L figures

Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, jsonify, request

from foamops.blueprints import current_actor, register_error_handlers, tenant_required
from foamops.services import financials_service, job_completion_service
from foamops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/v1")
register_error_handlers(jobs_bp, logger)


@jobs_bp.route("/jobs/<int:job_id>/start", methods=["POST"])
def start_job(job_id):
    """Mark the crew as on site."""
    tenant_id, err = tenant_required()
    if err:
        return err
    job = job_completion_service.start_job(tenant_id, job_id)
    return jsonify(job), 200


@jobs_bp.route("/jobs/<int:job_id>/complete", methods=["POST"])
def complete_job(job_id):
    """Crew submit.

    Body: actuals object —
        {openCellSets, closedCellSets, laborHours,
         inventory: [{id, quantity}], equipment: [id], completedBy, notes}

    Returns:
        200 completion summary (requested vs applied per material)
        409 ERR_ALREADY_PROCESSED when the job was already completed
        422 ERR_VALIDATION_INVALID for malformed actuals
        503 ERR_TRANSACTION_FAILURE (retryable)
    """
    tenant_id, err = tenant_required()
    if err:
        return err
    payload = request.get_json(silent=True)
    if payload is None:
        return api_error(E.VALIDATION_REQUIRED, "JSON body with actuals is required")

    result = job_completion_service.complete_job(
        tenant_id, job_id, payload, actor=current_actor()
    )
    return jsonify(result.to_dict()), 200


@jobs_bp.route("/jobs/<int:job_id>/material-logs", methods=["GET"])
def list_material_logs(job_id):
    tenant_id, err = tenant_required()
    if err:
        return err
    logs = job_completion_service.list_job_material_logs(tenant_id, job_id)
    return jsonify({"logs": logs, "total": len(logs)}), 200


@jobs_bp.route("/jobs/<int:job_id>/financials", methods=["GET"])
def job_financials(job_id):
    tenant_id, err = tenant_required()
    if err:
        return err
    return jsonify(financials_service.calculate_job_financials(tenant_id, job_id)), 200
