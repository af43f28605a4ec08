# Overview: Flask API routes for the item catalog; parses input and returns JSON responses.

"""
Item catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY
- Create / update / delete require MODIFY_CATALOG

Codes in URLs and payloads are normalized (trim + upper-case) by the
service layer, so /api/items/code/dr-01 finds DR-01.
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError, error_response
from ..permissions import Capability
from ..services import catalog_service, reporting_service


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def list_items_route():
    """
    List items.

    Query params: status (Inside|Outside), category, search, sort
    (code, name, category, status, last_updated; "-" prefix for descending).
    """
    try:
        items = catalog_service.list_items(
            status=request.args.get("status") or None,
            category=request.args.get("category") or None,
            search=request.args.get("search") or None,
            sort=request.args.get("sort") or None,
        )
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.post("")
@require_auth
@require_capability(Capability.MODIFY_CATALOG)
def create_item_route():
    payload = request.get_json(silent=True) or {}
    try:
        item = catalog_service.create_item(payload)
        current_app.logger.info("Item %s created", item.code)
        return jsonify({"item": item.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def get_item_route(item_id: int):
    try:
        return jsonify({"item": catalog_service.get_item(item_id).to_dict()})
    except ServiceError as e:
        return error_response(e)


@items_bp.get("/code/<code>")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def get_item_by_code_route(code: str):
    try:
        return jsonify({"item": catalog_service.get_by_code(code).to_dict()})
    except ServiceError as e:
        return error_response(e)


@items_bp.put("/<int:item_id>")
@require_auth
@require_capability(Capability.MODIFY_CATALOG)
def update_item_route(item_id: int):
    """
    Update name / category / description / image_ref.

    Status fields are owned by check-in/check-out and are rejected here.
    """
    payload = request.get_json(silent=True) or {}
    try:
        item = catalog_service.update_item(item_id, payload)
        return jsonify({"item": item.to_dict()})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@items_bp.delete("/<int:item_id>")
@require_auth
@require_capability(Capability.MODIFY_CATALOG)
def delete_item_route(item_id: int):
    try:
        catalog_service.delete_item(item_id)
        current_app.logger.info("Item %s deleted", item_id)
        return jsonify({"deleted": True, "id": item_id})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/stats")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def stats_route():
    """Dashboard counts, category breakdown and the 10 latest transactions."""
    try:
        return jsonify(reporting_service.dashboard_stats())
    except Exception:
        current_app.logger.exception("Failed to compute dashboard stats")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/checked-out")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def checked_out_route():
    try:
        items = reporting_service.checked_out_view(
            search=request.args.get("search") or None,
            category=request.args.get("category") or None,
        )
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})
    except ServiceError as e:
        return error_response(e)


@items_bp.get("/categories")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def categories_route():
    return jsonify({"categories": catalog_service.list_categories()})
