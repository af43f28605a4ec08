# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Authorization Predicates and Security Event Logging

WHY: Role checks used to live in scattered UI conditionals. Every mutating
entry point now calls into this module, so the HTTP routes, the CLI and
the services enforce one set of rules.

DESIGN PRINCIPLES:
- Fail closed: deny unless the role grants the capability
- Log denials only: grants are not logged
- User-management rules live here, next to the capability checks

USER MUTATION RULES:
- user-admin targets: only the same user-admin may edit itself; its role
  never changes; deleting a user-admin is always a Conflict
- nobody deletes or deactivates their own account (Conflict)
- an admin may edit itself but never change its own role
- another admin may only be edited/deleted by a user-admin, and nobody
  changes an admin's role
- staff accounts may be edited/deleted by any MANAGE_USERS principal
- the user-admin role is never assigned through these paths
"""

from ..errors import ConflictError, ForbiddenError, ValidationError
from ..extensions import db
from ..models import SecurityEvent, User
from ..permissions import (
    ASSIGNABLE_ROLES,
    ROLES,
    ROLE_ADMIN,
    ROLE_USER_ADMIN,
    Capability,
    capabilities_for_role,
)
from ..time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGIN_SUCCESS
    - USER_CREATED / USER_UPDATED / USER_DELETED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_capabilities(user: User | None) -> set[str]:
    """Capabilities granted by the user's role; empty for inactive users."""
    if user is None or not user.is_active:
        return set()
    return set(capabilities_for_role(user.role))


def authorize(user: User | None, capability: str) -> bool:
    """
    Check if user has a specific capability.

    WHY: Core check. Used by decorators and manual checks.
    """
    return capability in get_user_capabilities(user)


def require_capability(
    user: User | None,
    capability: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to have capability, raise ForbiddenError if not.

    Usage:
        require_capability(g.current_user, Capability.MODIFY_CATALOG, resource="/api/items")
    """
    if authorize(user, capability):
        return

    log_security_event(
        user_id=user.id if user else None,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=capability,
        reason=f"Missing capability: {capability}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise ForbiddenError(
        f"Permission denied: {capability}",
        required_capability=capability,
    )


# =============================================================================
# USER MUTATION RULES
# =============================================================================

def _validate_role(role: str) -> None:
    if role not in ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(ROLES)}",
            field="role",
        )


def check_can_create_user(actor: User, role: str) -> None:
    """Raise unless `actor` may create an account with `role`."""
    require_capability(actor, Capability.MANAGE_USERS)
    _validate_role(role)
    if role not in ASSIGNABLE_ROLES:
        raise ForbiddenError(f"Accounts with role {role} cannot be created here")


def check_can_edit_user(actor: User, target: User, changes: dict) -> None:
    """
    Raise unless `actor` may apply `changes` to `target`.

    `changes` holds the requested (already parsed) fields: name, role,
    is_active, password.
    """
    is_self = actor.id == target.id
    new_role = changes.get("role")
    role_change = new_role is not None and new_role != target.role

    if new_role is not None:
        _validate_role(new_role)

    if is_self:
        if role_change:
            raise ForbiddenError("You cannot change your own role")
        if changes.get("is_active") is False:
            raise ConflictError("You cannot deactivate your own account")
        return

    require_capability(actor, Capability.MANAGE_USERS)

    if target.role == ROLE_USER_ADMIN:
        raise ForbiddenError("user-admin accounts can only be edited by themselves")

    if target.role == ROLE_ADMIN:
        if actor.role != ROLE_USER_ADMIN:
            raise ForbiddenError("Admins cannot edit other admin accounts")
        if role_change:
            raise ForbiddenError("An admin's role cannot be changed by another user")

    if role_change and new_role not in ASSIGNABLE_ROLES:
        raise ForbiddenError(f"Role {new_role} cannot be assigned")


def check_can_delete_user(actor: User, target: User) -> None:
    """Raise unless `actor` may delete `target`."""
    if target.role == ROLE_USER_ADMIN:
        raise ConflictError("user-admin accounts cannot be deleted")

    if actor.id == target.id:
        raise ConflictError("You cannot delete your own account")

    require_capability(actor, Capability.MANAGE_USERS)

    if target.role == ROLE_ADMIN and actor.role != ROLE_USER_ADMIN:
        raise ForbiddenError("Admins cannot delete other admin accounts")
