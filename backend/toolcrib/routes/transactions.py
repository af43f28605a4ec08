# Overview: Flask API routes for check-in/check-out and the transaction ledger.

"""
Transaction routes.

SECURITY: All routes require authentication.
- Ledger reads and CSV export require VIEW_INVENTORY
- Check-in / check-out (single and batch) require CHECK_IN_OUT

Time semantics:
- start_date / end_date accept ISO-8601 datetimes or bare dates.
- Both bounds are inclusive; a bare end_date covers the whole day.
"""
from flask import Blueprint, Response, request, jsonify, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import ServiceError, ValidationError, error_response
from ..permissions import Capability
from ..services import ledger_service, reporting_service, transition_service
from ..time_utils import parse_range_bound, utcnow


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _pick(data: dict, *keys):
    """First present key wins; lets clients send snake_case or camelCase."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_filters() -> dict:
    args = request.args
    try:
        start = parse_range_bound(args.get("start_date") or args.get("startDate"))
    except ValueError:
        raise ValidationError("start_date must be an ISO-8601 date or datetime", field="start_date")
    try:
        end = parse_range_bound(args.get("end_date") or args.get("endDate"), end=True)
    except ValueError:
        raise ValidationError("end_date must be an ISO-8601 date or datetime", field="end_date")

    item_code = args.get("item_code") or args.get("code")
    return {
        "action": args.get("action") or None,
        "start": start,
        "end": end,
        "item_id": args.get("item_id", type=int),
        "item_code": item_code.strip().upper() if item_code else None,
        "user_id": args.get("user_id", type=int),
        "limit": args.get("limit", type=int),
    }


@transactions_bp.get("")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def list_transactions_route():
    """
    Filtered ledger, newest first.

    Query params: action (CheckOut|CheckIn), start_date, end_date, item_id,
    item_code, user_id, limit.
    """
    try:
        rows = ledger_service.query_transactions(**_parse_filters())
        return jsonify({"transactions": [t.to_dict() for t in rows], "count": len(rows)})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to query transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/recent")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def recent_transactions_route():
    limit = request.args.get("limit", ledger_service.RECENT_DEFAULT_LIMIT, type=int)
    rows = ledger_service.recent_transactions(limit)
    return jsonify({"transactions": [t.to_dict() for t in rows]})


@transactions_bp.get("/item/<int:item_id>")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def item_history_route(item_id: int):
    """History for one item id; still answers after the item is deleted."""
    rows = ledger_service.item_history(item_id)
    return jsonify({"item_id": item_id, "transactions": [t.to_dict() for t in rows]})


@transactions_bp.get("/export")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def export_transactions_route():
    """Filtered ledger as a CSV download (same filters as the list route)."""
    try:
        rows = ledger_service.query_transactions(**_parse_filters())
    except ServiceError as e:
        return error_response(e)

    filename = f"transactions-{utcnow().strftime('%Y%m%d-%H%M%S')}.csv"
    return Response(
        reporting_service.transactions_csv(rows),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@transactions_bp.post("/checkout")
@require_auth
@require_capability(Capability.CHECK_IN_OUT)
def checkout_route():
    """
    Check an item out.

    Body: code, checkout_person, project_name, notes (optional).

    Returns 409 (InvalidTransition, with current_status) when the item is
    already Outside, 404 for an unknown code, 503 (Busy) on lock timeout.
    """
    data = request.get_json(silent=True) or {}
    try:
        outcome = transition_service.check_out(
            data.get("code"),
            user=g.current_user,
            checkout_person=_pick(data, "checkout_person", "checkoutPerson"),
            project_name=_pick(data, "project_name", "projectName"),
            notes=data.get("notes"),
        )
        return jsonify(outcome.to_dict()), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check out item")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/checkin")
@require_auth
@require_capability(Capability.CHECK_IN_OUT)
def checkin_route():
    """Check an item back in. Body: code, notes (optional)."""
    data = request.get_json(silent=True) or {}
    try:
        outcome = transition_service.check_in(
            data.get("code"),
            user=g.current_user,
            notes=data.get("notes"),
        )
        return jsonify(outcome.to_dict()), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check in item")
        return jsonify({"error": "Internal server error"}), 500


def _batch_response(results):
    return jsonify({
        "results": [r.to_dict() for r in results],
        "summary": transition_service.summarize_batch(results),
    }), 200


@transactions_bp.post("/batch-checkout")
@require_auth
@require_capability(Capability.CHECK_IN_OUT)
def batch_checkout_route():
    """
    Check out several items to one person/project.

    Every code is handled on its own; the response lists a result per
    code in request order, so partial success is normal.
    """
    data = request.get_json(silent=True) or {}
    try:
        results = transition_service.batch_check_out(
            data.get("codes"),
            user=g.current_user,
            checkout_person=_pick(data, "checkout_person", "checkoutPerson"),
            project_name=_pick(data, "project_name", "projectName"),
            notes=data.get("notes"),
        )
        return _batch_response(results)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to batch check out")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/batch-checkin")
@require_auth
@require_capability(Capability.CHECK_IN_OUT)
def batch_checkin_route():
    data = request.get_json(silent=True) or {}
    try:
        results = transition_service.batch_check_in(
            data.get("codes"),
            user=g.current_user,
            notes=data.get("notes"),
        )
        return _batch_response(results)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to batch check in")
        return jsonify({"error": "Internal server error"}), 500
