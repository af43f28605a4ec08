# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every transition must be attributable to a named account. Uses
bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters required
- Unknown name, wrong password and inactive account fail identically
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    DuplicateNameError,
    ForbiddenError,
    InvalidCredentialsError,
    ValidationError,
    WeakPasswordError,
)
from ..extensions import db
from ..models import User
from ..permissions import ROLES, ROLE_ADMIN, ROLE_STAFF
from ..time_utils import utcnow


MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 64


def validate_password_strength(password: str | None) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 6 characters

    Raises WeakPasswordError if requirements not met.
    """
    if password is not None and not isinstance(password, str):
        raise WeakPasswordError("Password must be a string", field="password")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPasswordError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            field="password",
        )


def normalize_name(name: str | None) -> str:
    """Trim a login name and check its shape. Case is preserved."""
    if name is not None and not isinstance(name, str):
        raise ValidationError("name must be a string", field="name")
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("name is required", field="name")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"name exceeds max length {MAX_NAME_LENGTH}", field="name")
    return cleaned


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def name_taken(name: str, *, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User).filter(User.name == name)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return db.session.query(query.exists()).scalar()


def create_user(name: str, password: str, role: str = ROLE_STAFF, *, is_active: bool = True) -> User:
    """
    Create new user with bcrypt password hashing.

    No authorization here: callers (user_service, register(), the CLI)
    decide who may create which role.

    Raises:
        ValidationError: malformed name or unknown role
        WeakPasswordError: password too short
        DuplicateNameError: name already in use (case-sensitive)
    """
    name = normalize_name(name)
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}", field="role")

    password_hash = hash_password(password)

    if name_taken(name):
        raise DuplicateNameError(f"User name {name!r} is already taken", field="name")

    user = User(
        name=name,
        role=role,
        password_hash=password_hash,
        is_active=is_active,
    )

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent create of the same name
        db.session.rollback()
        raise DuplicateNameError(f"User name {name!r} is already taken", field="name") from exc
    return user


def register(name: str, password: str, role: str | None = None) -> User:
    """
    Self-registration.

    - role defaults to staff
    - the first account of an empty system may register as admin
    - afterwards only SELF_REGISTRATION_ROLES may be requested
    - user-admin is never self-registered
    """
    role = role or ROLE_STAFF
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}", field="role")

    allowed = set(current_app.config.get("SELF_REGISTRATION_ROLES", (ROLE_STAFF,)))
    if db.session.query(User.id).first() is None:
        allowed.add(ROLE_ADMIN)

    if role not in allowed:
        raise ForbiddenError(f"Self-registration cannot create {role} accounts")

    return create_user(name, password, role)


def authenticate(name: str, password: str) -> User:
    """
    Authenticate user with name and password.

    Returns the User on success and updates last_login_at.

    Raises InvalidCredentialsError if the name is unknown, the password
    does not match, or the account is inactive.
    """
    user = db.session.query(User).filter(User.name == (name or "").strip()).first()

    if not user or not user.is_active or not password:
        raise InvalidCredentialsError("Invalid credentials")

    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("Invalid credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user
