"""
Pytest fixtures for toolcrib backend tests.

Provides a throwaway SQLite database per test, the test client, one user
per role, and auth helpers.

A file database (not :memory:) is used so worker threads in the
concurrency tests, each with their own connection, see the same data.
"""

import pytest

from toolcrib import create_app
from toolcrib.extensions import db
from toolcrib.permissions import ROLE_ADMIN, ROLE_STAFF, ROLE_USER_ADMIN
from toolcrib.services import auth_service, catalog_service


TEST_PASSWORD = "secret-pass"


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'toolcrib-test.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'DB_RETRY_BACKOFF_SECONDS': 0.01,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user("alice", TEST_PASSWORD, ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_user(db_session):
    return auth_service.create_user("bob", TEST_PASSWORD, ROLE_STAFF)


@pytest.fixture(scope='function')
def user_admin(db_session):
    return auth_service.create_user("root", TEST_PASSWORD, ROLE_USER_ADMIN)


@pytest.fixture(scope='function')
def drill(db_session):
    """The item from the classic check-out/check-in walkthrough."""
    return catalog_service.create_item({"code": "DRL-01", "name": "Drill", "category": "Power Tools"})


@pytest.fixture(scope='function')
def make_item(db_session):
    def _make(code, name=None, category="Hand Tools", **extra):
        payload = {"code": code, "name": name or f"Item {code}", "category": category}
        payload.update(extra)
        return catalog_service.create_item(payload)
    return _make


def get_auth_token(client, name: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'name': name,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.name))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.name))


@pytest.fixture(scope='function')
def user_admin_headers(client, user_admin):
    return auth_headers(get_auth_token(client, user_admin.name))
