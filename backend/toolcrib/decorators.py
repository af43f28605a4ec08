# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import ForbiddenError, UnauthorizedError, error_response
from .services import session_service, permission_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return error_response(UnauthorizedError("Authentication required"))

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return error_response(UnauthorizedError("Invalid or expired token"))

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Require a specific capability of the current user's role.

    Must be applied after @require_auth. Denials are written to the
    security event log by permission_service.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response(UnauthorizedError("Authentication required"))

            try:
                permission_service.require_capability(
                    g.current_user,
                    capability,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except ForbiddenError as e:
                return error_response(e)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
