"""
Inventory blueprint — warehouse counts.

Endpoints (prefix /api/v1, tenant from X-Tenant-ID):
  GET  /inventory/chemical-stock   chemical pool snapshot
  POST /inventory/adjust           restock / correct chemical or item stock

Adjust body:
  {"material_type": "OpenCell" | "ClosedCell", "delta": 4, "reason": "..."}
  {"material_type": "Inventory", "item_id": 7, "delta": -2}
"""

import logging

from flask import Blueprint, jsonify, request

from foamops.blueprints import current_actor, register_error_handlers, tenant_required
from foamops.models.inventory import MATERIAL_INVENTORY
from foamops.services import stock_service
from foamops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/v1")
register_error_handlers(inventory_bp, logger)


@inventory_bp.route("/inventory/chemical-stock", methods=["GET"])
def chemical_stock():
    tenant_id, err = tenant_required()
    if err:
        return err
    return jsonify(stock_service.get_chemical_stock(tenant_id)), 200


@inventory_bp.route("/inventory/adjust", methods=["POST"])
def adjust_stock():
    """Manual warehouse update. Writes a Restock/Adjustment material log."""
    tenant_id, err = tenant_required()
    if err:
        return err
    data = request.get_json(silent=True) or {}

    material_type = (data.get("material_type") or "").strip()
    if not material_type:
        return api_error(E.VALIDATION_REQUIRED, "material_type is required")
    if "delta" not in data:
        return api_error(E.VALIDATION_REQUIRED, "delta is required")
    reason = (data.get("reason") or "").strip()[:200] or None

    if material_type == MATERIAL_INVENTORY:
        item_id = data.get("item_id")
        if not isinstance(item_id, int) or isinstance(item_id, bool):
            return api_error(E.VALIDATION_REQUIRED, "item_id is required for Inventory adjustments")
        result = stock_service.adjust_inventory_item(
            tenant_id, item_id, data["delta"], actor=current_actor(), reason=reason
        )
    else:
        result = stock_service.adjust_chemical_stock(
            tenant_id, material_type, data["delta"], actor=current_actor(), reason=reason
        )
    return jsonify(result), 200
