"""
CLI command tests (flask system / users / items / maintenance).
"""

from toolcrib.models import SecurityEvent, SessionToken, User
from toolcrib.services import session_service, transition_service
from toolcrib.time_utils import utcnow


def test_init_db_is_idempotent(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "init-db"])
    assert result.exit_code == 0
    assert "PASS" in result.output


def test_create_user_admin_from_cli(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["users", "create", "--name", "root", "--password", "secret-pass", "--role", "user-admin"])
    assert result.exit_code == 0, result.output
    user = db_session.query(User).filter_by(name="root").one()
    assert user.role == "user-admin"


def test_create_user_weak_password(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["users", "create", "--name", "x", "--password", "123", "--role", "staff"])
    assert result.exit_code != 0
    assert "Password must be at least" in result.output


def test_list_users(app, admin_user, staff_user):
    result = app.test_cli_runner().invoke(args=["users", "list"])
    assert result.exit_code == 0
    assert "alice" in result.output
    assert "bob" in result.output


def test_list_items_by_status(app, make_item, staff_user):
    make_item("A-1")
    make_item("B-1")
    transition_service.check_out("B-1", user=staff_user, checkout_person="Kim", project_name="Roof")

    result = app.test_cli_runner().invoke(args=["items", "list", "--status", "Outside"])
    assert result.exit_code == 0
    assert "B-1" in result.output
    assert "Kim" in result.output
    assert "A-1" not in result.output


def test_cleanup_sessions(app, staff_user, db_session):
    _, token = session_service.create_session(staff_user.id)
    session_service.revoke_session(token)
    result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions", "--older-than-days", "0"])
    assert result.exit_code == 0
    assert "Deleted 1 sessions" in result.output
    assert db_session.query(SessionToken).count() == 0


def test_cleanup_security_events(app, db_session):
    db_session.add(SecurityEvent(event_type="LOGIN_FAILED", success=False, occurred_at=utcnow()))
    db_session.commit()
    result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-security-events", "--retention-days", "30"])
    assert result.exit_code == 0
    assert "Deleted 0 security events" in result.output
