"""
Shared pytest fixtures for the statusdesk test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - manager / developer / developer_b / leadership / finance_user: users
    - auth_headers: builds a Bearer header for a user
"""

import pytest

from statusdesk import create_app
from statusdesk.models import db as _db
from statusdesk.models.auth import User
from statusdesk.services.jwt_service import generate_access_token
from statusdesk.utils.crypto import hash_password

TEST_PASSWORD = "Passw0rd!long"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users ────────────────────────────────────────────────────────────────


def make_user(name, email, role, hourly_rate=0.0, department=None, **extra):
    # rounds=4 keeps bcrypt fast in tests
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
        hourly_rate=hourly_rate,
        department=department,
        **extra,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def manager():
    return make_user("Maya Manager", "maya@example.com", "manager", hourly_rate=80.0,
                     department="Management", is_super_admin=True)


@pytest.fixture()
def developer():
    return make_user("Alice Dev", "alice@example.com", "developer", hourly_rate=50.0, department="Backend")


@pytest.fixture()
def developer_b():
    return make_user("Bob Dev", "bob@example.com", "developer", hourly_rate=40.0, department="Frontend")


@pytest.fixture()
def leadership():
    return make_user("Lee Lead", "lee@example.com", "leadership", hourly_rate=100.0)


@pytest.fixture()
def finance_user():
    return make_user("Fin Ance", "fin@example.com", "finance")


@pytest.fixture()
def auth_headers():
    """Return a callable: user → {"Authorization": "Bearer <token>"}."""
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id, user.role)}"}
    return _headers
