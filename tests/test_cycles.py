"""
Cycle endpoints — creation rules and forward-only lifecycle.
"""

import pytest

from okr_api.models.audit import AuditLog
from okr_api.services.jwt_service import generate_token_pair


def _headers(app, user_id, tenant_id):
    with app.app_context():
        tokens = generate_token_pair(user_id, tenant_id, [])
    return {
        "Authorization": f"Bearer {tokens['access_token']}",
        "Content-Type": "application/json",
    }


@pytest.fixture()
def admin(app, org):
    return _headers(app, org["admin_id"], org["tenant_id"])


def _new_cycle(client, headers, **body):
    body = {"name": "Q1-2026", "start_date": "2026-01-01", "end_date": "2026-03-31", **body}
    return client.post("/api/v1/cycles", json=body, headers=headers)


class TestCreateCycle:

    def test_create(self, client, org, admin):
        res = _new_cycle(client, admin)
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "DRAFT"
        assert data["start_date"] == "2026-01-01"
        assert AuditLog.query.filter_by(action="cycle.create").count() == 1

    def test_start_must_precede_end(self, client, org, admin):
        res = _new_cycle(client, admin, end_date="2026-01-01")
        assert res.status_code == 422

    def test_bad_date(self, client, org, admin):
        res = _new_cycle(client, admin, start_date="first of jan")
        assert res.status_code == 422
        assert res.get_json()["details"] == {"start_date": "invalid"}

    def test_name_required(self, client, org, admin):
        assert _new_cycle(client, admin, name="  ").status_code == 422

    def test_duplicate_name(self, client, org, admin):
        res = _new_cycle(client, admin, name="Q4-2025")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_same_name_other_tenant_ok(self, app, client, org):
        res = _new_cycle(client, _headers(app, org["other_admin_id"], org["tenant2_id"]), name="Q4-2025")
        assert res.status_code == 201

    def test_lead_denied(self, app, client, org):
        res = _new_cycle(client, _headers(app, org["lead_id"], org["tenant_id"]))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_AUTHZ_RBAC"


class TestListCycles:

    def test_list_scoped_to_tenant(self, app, client, org):
        res = client.get("/api/v1/cycles", headers=_headers(app, org["viewer_id"], org["tenant_id"]))
        assert [c["name"] for c in res.get_json()] == ["Q4-2025"]
        res = client.get("/api/v1/cycles", headers=_headers(app, org["other_admin_id"], org["tenant2_id"]))
        assert res.get_json() == []

    def test_get_other_tenant_404(self, app, client, org):
        res = client.get(f"/api/v1/cycles/{org['cycle_id']}",
                         headers=_headers(app, org["other_admin_id"], org["tenant2_id"]))
        assert res.status_code == 404


class TestTransitions:

    def test_full_forward_path(self, client, org, admin):
        cycle = _new_cycle(client, admin).get_json()
        url = f"/api/v1/cycles/{cycle['id']}/transition"
        for action, status in (("activate", "ACTIVE"), ("lock", "LOCKED"), ("archive", "ARCHIVED")):
            res = client.post(url, json={"action": action}, headers=admin)
            assert res.status_code == 200
            assert res.get_json()["status"] == status
        log = AuditLog.query.filter_by(action="cycle.lock").one()
        assert log.meta["status"] == {"old": "ACTIVE", "new": "LOCKED"}

    def test_backward_rejected(self, client, org, admin):
        url = f"/api/v1/cycles/{org['cycle_id']}/transition"
        client.post(url, json={"action": "lock"}, headers=admin)
        res = client.post(url, json={"action": "activate"}, headers=admin)
        assert res.status_code == 409
        assert res.get_json()["current_state"] == "LOCKED"

    def test_unknown_action(self, client, org, admin):
        res = client.post(f"/api/v1/cycles/{org['cycle_id']}/transition", json={"action": "unlock"}, headers=admin)
        assert res.status_code == 422

    def test_contributor_denied(self, app, client, org):
        res = client.post(
            f"/api/v1/cycles/{org['cycle_id']}/transition", json={"action": "lock"},
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        )
        assert res.status_code == 403
        assert AuditLog.query.count() == 0


class TestUpdateCycle:

    def _url(self, org):
        return f"/api/v1/cycles/{org['cycle_id']}"

    def test_rename(self, client, org, admin):
        res = client.patch(self._url(org), json={"name": "Q4-2025 (ext)"}, headers=admin)
        assert res.status_code == 200
        assert res.get_json()["name"] == "Q4-2025 (ext)"
        log = AuditLog.query.filter_by(action="cycle.update").one()
        assert log.meta["changes"]["name"] == {"old": "Q4-2025", "new": "Q4-2025 (ext)"}

    def test_extend_end_date(self, client, org, admin):
        res = client.patch(self._url(org), json={"end_date": "2026-01-15"}, headers=admin)
        assert res.status_code == 200
        assert res.get_json()["end_date"] == "2026-01-15"
        assert res.get_json()["start_date"] == "2025-10-01"

    def test_no_change_writes_no_audit(self, client, org, admin):
        res = client.patch(self._url(org), json={"name": "Q4-2025"}, headers=admin)
        assert res.status_code == 200
        assert AuditLog.query.filter_by(action="cycle.update").count() == 0

    def test_start_must_precede_end(self, client, org, admin):
        res = client.patch(self._url(org), json={"start_date": "2026-02-01"}, headers=admin)
        assert res.status_code == 422
        assert res.get_json()["details"] == {"end_date": "before start"}

    def test_duplicate_name(self, client, org, admin):
        _new_cycle(client, admin, name="Q1-2026")
        res = client.patch(self._url(org), json={"name": "Q1-2026"}, headers=admin)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_lead_denied(self, app, client, org):
        res = client.patch(self._url(org), json={"name": "renamed"},
                           headers=_headers(app, org["lead_id"], org["tenant_id"]))
        assert res.status_code == 403
        assert AuditLog.query.count() == 0

    def test_archived_cycle_rejected(self, client, org, admin):
        url = self._url(org)
        client.post(f"{url}/transition", json={"action": "lock"}, headers=admin)
        client.post(f"{url}/transition", json={"action": "archive"}, headers=admin)
        res = client.patch(url, json={"name": "renamed"}, headers=admin)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"
