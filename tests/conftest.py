"""
Shared pytest fixtures for the VIC Incident Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - seeded: Demo catalog (permissions, roles, statuses, VIC, one user per role)
    - auth_headers: Builds a Bearer header for a user
"""

import pytest

from vic_tracker import create_app
from vic_tracker.models import db as _db
from vic_tracker.models.auth import Role, User, VehicleInspectionCenter
from vic_tracker.models.incident import IncidentStatus, IncidentType
from vic_tracker.services.jwt_service import generate_access_token
from vic_tracker.services.permission_service import get_cache, get_resolver
from vic_tracker.services.seed_service import seed_demo_data


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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
        # DB is recreated per test and ids are reused; clear the permission
        # cache so no role resolved in one test leaks into the next.
        get_cache().invalidate_all()
        yield
        get_cache().invalidate_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


class Seeded:
    """Handles to the demo rows, looked up by their unique names."""

    def user(self, role_name) -> User:
        return User.query.join(Role).filter(Role.name == role_name).first()

    def principal(self, role_name):
        return get_resolver().resolve_user(self.user(role_name).id)

    def status(self, name) -> IncidentStatus:
        return IncidentStatus.query.filter_by(name=name).first()

    def incident_type(self, name) -> IncidentType:
        return IncidentType.query.filter_by(name=name).first()

    @property
    def vic(self) -> VehicleInspectionCenter:
        return VehicleInspectionCenter.query.filter_by(code="VIC001").first()


@pytest.fixture()
def seeded():
    """Seed the demo catalog and return lookup handles."""
    seed_demo_data()
    _db.session.commit()
    return Seeded()


@pytest.fixture()
def auth_headers():
    """Return a function that builds an Authorization header for a user."""
    def _headers(user):
        token = generate_access_token(user.id, user.role.name)
        return {"Authorization": f"Bearer {token}"}
    return _headers
