# Overview: Flask API routes for user management; parses input and returns JSON responses.

"""
User management routes.

SECURITY: All routes require authentication.
- Listing and reading users requires MANAGE_USERS
- Create / update / delete are checked per target by permission_service
  (self-edits are allowed without MANAGE_USERS, with restrictions)
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import ServiceError, error_response
from ..permissions import Capability
from ..services import permission_service, user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _audit(event_type: str, target_id: int | None, action: str) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=action,
        reason=f"target_user_id={target_id}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@users_bp.get("")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def list_users_route():
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = user_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users]})


@users_bp.get("/<int:user_id>")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def get_user_route(user_id: int):
    try:
        return jsonify({"user": user_service.get_user(user_id).to_dict()})
    except ServiceError as e:
        return error_response(e)


@users_bp.post("")
@require_auth
def create_user_route():
    """Create an admin or staff account. Body: name, password, role."""
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.create_user(
            g.current_user,
            name=data.get("name"),
            password=data.get("password"),
            role=data.get("role") or "staff",
        )
        _audit("USER_CREATED", user.id, "create")
        return jsonify({"user": user.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """
    Update name / role / is_active / password.

    Password changes and deactivation revoke the target's sessions.
    """
    data = request.get_json(silent=True) or {}
    if "isActive" in data and "is_active" not in data:
        data["is_active"] = data.pop("isActive")
    try:
        user = user_service.update_user(g.current_user, user_id, data)
        _audit("USER_UPDATED", user.id, "update")
        return jsonify({"user": user.to_dict()})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.current_user, user_id)
        _audit("USER_DELETED", user_id, "delete")
        return jsonify({"deleted": True, "id": user_id})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500
