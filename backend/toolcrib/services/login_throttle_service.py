"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the name is temporarily locked.

SECURITY FEATURES:
- Tracks failed attempts per login name
- Lockout after LOGIN_MAX_FAILED_ATTEMPTS failures within the lockout window
- Lockout duration: LOGIN_LOCKOUT_MINUTES
- Uses the security_events table for tracking
- A successful login resets the count
"""

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent, User
from ..time_utils import utcnow


def _max_attempts() -> int:
    return current_app.config.get("LOGIN_MAX_FAILED_ATTEMPTS", 10)


def _lockout_window() -> timedelta:
    return timedelta(minutes=current_app.config.get("LOGIN_LOCKOUT_MINUTES", 15))


def _last_success_at(identifier: str):
    row = db.session.query(SecurityEvent.occurred_at).filter(
        SecurityEvent.event_type == "LOGIN_SUCCESS",
        SecurityEvent.action == identifier[:64],
    ).order_by(SecurityEvent.occurred_at.desc()).first()
    return row[0] if row else None


def get_recent_failed_attempts(identifier: str) -> int:
    """
    Count recent failed login attempts for a name.

    Only failures inside the lockout window and after the most recent
    successful login are counted.
    """
    cutoff = utcnow() - _lockout_window()
    last_success = _last_success_at(identifier)
    if last_success is not None and last_success > cutoff:
        cutoff = last_success

    # The login name is stored in the 'action' field of security events
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier[:64],
        SecurityEvent.occurred_at >= cutoff
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if a name is currently locked due to too many failed attempts.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(identifier) < _max_attempts():
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier[:64]
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + _lockout_window()
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials"
) -> int:
    """
    Record a failed login attempt.

    Returns the total number of recent failed attempts.
    """
    user = db.session.query(User).filter(User.name == identifier).first()

    event = SecurityEvent(
        user_id=user.id if user else None,
        event_type="LOGIN_FAILED",
        resource="/api/auth/login",
        action=identifier[:64],
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None
) -> None:
    """Record a successful login; this resets the failure count."""
    event = SecurityEvent(
        user_id=user_id,
        event_type="LOGIN_SUCCESS",
        resource="/api/auth/login",
        action=identifier[:64],
        success=True,
        reason=None,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()


def get_lockout_status(identifier: str) -> dict:
    """Detailed lockout status for a name."""
    failed_count = get_recent_failed_attempts(identifier)
    is_locked, seconds_remaining = is_account_locked(identifier)
    window_minutes = int(_lockout_window().total_seconds() / 60)

    return {
        "locked": is_locked,
        "failed_attempts": failed_count,
        "max_attempts": _max_attempts(),
        "seconds_until_unlock": seconds_remaining,
        "lockout_window_minutes": window_minutes,
        "lockout_duration_minutes": window_minutes,
    }
