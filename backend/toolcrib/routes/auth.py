# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration
- Login throttling to prevent brute-force attacks
- Account lockout after repeated failed attempts
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services import permission_service
from ..errors import InvalidCredentialsError, ServiceError, ValidationError, error_response
from ..decorators import require_auth
from ..permissions import describe_capabilities


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token) -> dict:
    return {
        "user": user.to_dict(),
        "capabilities": sorted(permission_service.get_user_capabilities(user)),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """
    Self-registration.

    Creates a staff account (the very first account may be an admin) and
    logs it in straight away.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register(
            data.get("name"),
            data.get("password"),
            data.get("role"),
        )
        permission_service.log_security_event(
            user_id=user.id,
            event_type="USER_CREATED",
            success=True,
            resource=request.path,
            action="register",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify(_session_payload(user, session, token)), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in Authorization header for protected routes.

    SECURITY:
    - Checks for account lockout before attempting authentication
    - Records failed attempts for throttling
    - Records successful logins for audit trail
    """
    try:
        data = request.get_json(silent=True) or {}
        name = data.get("name") or data.get("username") or ""
        password = data.get("password")

        if not isinstance(name, str) or (password is not None and not isinstance(password, str)):
            return error_response(ValidationError(
                "name and password must be strings",
                fields={
                    key: "must be a string"
                    for key, value in (("name", name), ("password", password))
                    if value is not None and not isinstance(value, str)
                },
            ))

        name = name.strip()
        if not name or not password:
            return jsonify({
                "error": "name and password required",
                "kind": "ValidationError",
            }), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(name)
        if is_locked:
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "kind": "Locked",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
            }), 429  # Too Many Requests

        try:
            user = auth_service.authenticate(name, password)
        except InvalidCredentialsError as e:
            failed_count = login_throttle_service.record_failed_attempt(
                identifier=name,
                ip_address=ip_address,
                user_agent=user_agent,
                reason="Invalid credentials",
            )
            current_app.logger.info("Failed login for %s (%d recent failures)", name, failed_count)

            remaining = current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"] - failed_count
            if remaining <= 0:
                return jsonify({
                    "error": "Account locked due to too many failed login attempts",
                    "kind": "Locked",
                    "locked": True,
                    "retry_after_seconds": current_app.config["LOGIN_LOCKOUT_MINUTES"] * 60,
                }), 429
            body = e.to_dict()
            if remaining <= 3:
                # Warn user they're close to lockout
                body["warning"] = f"{remaining} attempts remaining before account lockout"
            return jsonify(body), e.status_code

        login_throttle_service.record_successful_login(
            user_id=user.id,
            identifier=name,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        payload = _session_payload(user, session, token)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/lockout-status/<name>")
def lockout_status_route(name: str):
    """
    Check lockout status for an account.

    Public, so a client can tell a user when they may retry.
    """
    status = login_throttle_service.get_lockout_status(name)
    return jsonify(status)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token that authenticated this request."""
    token = request.headers.get("Authorization", "").split(" ", 1)[1]
    session_service.revoke_session(token, "User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, role capabilities and session info."""
    user = g.current_user
    capabilities = permission_service.get_user_capabilities(user)
    return jsonify({
        "user": user.to_dict(),
        "capabilities": sorted(capabilities),
        "capability_details": describe_capabilities(capabilities),
        "session": g.session_context.session.to_dict(),
    })
