"""
Shared pytest fixtures for the OKR Platform API test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: two tenants with a user per role, a workspace/team and an ACTIVE cycle
"""

from datetime import date

import pytest

from okr_api import create_app
from okr_api.models import db as _db
from okr_api.models.auth import RoleAssignment, Team, Tenant, User, Workspace
from okr_api.models.okr import Cycle
from okr_api.services.role_service import invalidate_all_cache


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
        # DB is recreated per test and ids are reused; clear the role cache to
        # avoid stale decisions keyed by user_id.
        invalidate_all_cache()
        yield
        invalidate_all_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Data helpers ─────────────────────────────────────────────────────────


def _make_tenant(name, slug, **kw):
    t = Tenant(name=name, slug=slug, is_active=True, **kw)
    _db.session.add(t)
    _db.session.flush()
    return t


def _make_user(tenant, email, **kw):
    u = User(tenant_id=tenant.id if tenant else None, email=email, full_name=email.split("@")[0], **kw)
    _db.session.add(u)
    _db.session.flush()
    return u


def _assign(user, role, scope_type, scope_id):
    _db.session.add(RoleAssignment(
        tenant_id=user.tenant_id, user_id=user.id, role=role,
        scope_type=scope_type, scope_id=scope_id,
    ))
    _db.session.flush()


@pytest.fixture()
def org():
    """Acme (primary tenant) and Globex (other tenant). Returns dict of IDs."""
    acme = _make_tenant("Acme", "acme")
    globex = _make_tenant("Globex", "globex")
    ws = Workspace(tenant_id=acme.id, name="Product")
    _db.session.add(ws)
    _db.session.flush()
    team = Team(tenant_id=acme.id, workspace_id=ws.id, name="Platform")
    _db.session.add(team)
    _db.session.flush()

    owner = _make_user(acme, "owner@acme.test")
    admin = _make_user(acme, "admin@acme.test")
    lead = _make_user(acme, "lead@acme.test")
    contributor = _make_user(acme, "contrib@acme.test", manager_id=lead.id)
    contributor2 = _make_user(acme, "contrib2@acme.test")
    viewer = _make_user(acme, "viewer@acme.test")
    team_member = _make_user(acme, "team@acme.test")
    other_admin = _make_user(globex, "admin@globex.test")
    superuser = _make_user(None, "root@platform.test", is_superuser=True)

    _assign(owner, "TENANT_OWNER", "TENANT", acme.id)
    _assign(admin, "TENANT_ADMIN", "TENANT", acme.id)
    _assign(lead, "WORKSPACE_LEAD", "WORKSPACE", ws.id)
    _assign(lead, "TENANT_VIEWER", "TENANT", acme.id)
    _assign(contributor, "CONTRIBUTOR", "TENANT", acme.id)
    _assign(contributor2, "CONTRIBUTOR", "TENANT", acme.id)
    _assign(viewer, "TENANT_VIEWER", "TENANT", acme.id)
    _assign(team_member, "TEAM_CONTRIBUTOR", "TEAM", team.id)
    _assign(other_admin, "TENANT_ADMIN", "TENANT", globex.id)

    cycle = Cycle(
        tenant_id=acme.id, name="Q4-2025", status="ACTIVE",
        start_date=date(2025, 10, 1), end_date=date(2025, 12, 31),
    )
    _db.session.add(cycle)
    _db.session.commit()

    return {
        "tenant_id": acme.id,
        "tenant2_id": globex.id,
        "workspace_id": ws.id,
        "team_id": team.id,
        "cycle_id": cycle.id,
        "owner_id": owner.id,
        "admin_id": admin.id,
        "lead_id": lead.id,
        "contributor_id": contributor.id,
        "contributor2_id": contributor2.id,
        "viewer_id": viewer.id,
        "team_member_id": team_member.id,
        "other_admin_id": other_admin.id,
        "superuser_id": superuser.id,
    }
