# Overview: Service-layer operations for user accounts; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateNameError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from . import auth_service, permission_service, session_service


USER_WRITABLE_FIELDS = {"name", "role", "is_active", "password"}


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def list_users(*, include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name.asc()).all()


def _parse_changes(fields: dict) -> dict:
    unknown = set(fields) - USER_WRITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Field not allowed: {', '.join(sorted(unknown))}",
            fields={k: "not allowed" for k in unknown},
        )

    changes: dict = {}
    if "name" in fields:
        changes["name"] = auth_service.normalize_name(fields["name"])
    if "role" in fields and fields["role"] is not None:
        changes["role"] = str(fields["role"]).strip()
    if "is_active" in fields and fields["is_active"] is not None:
        if not isinstance(fields["is_active"], bool):
            raise ValidationError("is_active must be a boolean", field="is_active")
        changes["is_active"] = fields["is_active"]
    if fields.get("password"):
        auth_service.validate_password_strength(fields["password"])
        changes["password"] = fields["password"]
    return changes


def create_user(actor: User, *, name: str, password: str, role: str) -> User:
    """Create an account on behalf of `actor` (see permission_service rules)."""
    permission_service.check_can_create_user(actor, role)
    return auth_service.create_user(name, password, role)


def update_user(actor: User, user_id: int, fields: dict) -> User:
    """
    Apply name/role/is_active/password changes to a user.

    A password change or deactivation revokes the target's sessions.
    """
    target = get_user(user_id)
    changes = _parse_changes(fields)
    permission_service.check_can_edit_user(actor, target, changes)

    if "name" in changes and changes["name"] != target.name:
        if auth_service.name_taken(changes["name"], exclude_user_id=target.id):
            raise DuplicateNameError(f"User name {changes['name']!r} is already taken", field="name")
        target.name = changes["name"]

    if "role" in changes:
        target.role = changes["role"]

    revoke_reason = None
    if "is_active" in changes:
        if target.is_active and not changes["is_active"]:
            revoke_reason = "User account deactivated"
        target.is_active = changes["is_active"]

    if "password" in changes:
        target.password_hash = auth_service.hash_password(changes["password"])
        revoke_reason = revoke_reason or "Password changed"

    if revoke_reason and target.id != actor.id:
        session_service.revoke_all_user_sessions(target.id, revoke_reason, commit=False)

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateNameError(f"User name {changes.get('name')!r} is already taken", field="name") from exc
    return target


def delete_user(actor: User, user_id: int) -> None:
    """Hard delete. user-admin accounts and the caller's own account are protected."""
    target = get_user(user_id)
    permission_service.check_can_delete_user(actor, target)
    db.session.delete(target)
    db.session.commit()
