"""
rbacInspector feature flag and the explain surface over HTTP.
"""

import pytest

from okr_api.models import db as _db
from okr_api.models.audit import AuditLog
from okr_api.models.auth import User
from okr_api.services.feature_flag_service import get_user_features
from okr_api.services.jwt_service import generate_token_pair


def _headers(app, user_id, tenant_id):
    with app.app_context():
        tokens = generate_token_pair(user_id, tenant_id, [])
    return {
        "Authorization": f"Bearer {tokens['access_token']}",
        "Content-Type": "application/json",
    }


def _inspector_url(user_id):
    return f"/api/v1/rbac/users/{user_id}/features/rbac-inspector"


@pytest.fixture()
def published_objective(app, client, org):
    """Objective owned by the contributor, published by the admin."""
    admin = _headers(app, org["admin_id"], org["tenant_id"])
    obj = client.post(
        "/api/v1/objectives",
        json={"title": "Grow ARR", "owner_id": org["contributor_id"]},
        headers=admin,
    ).get_json()
    client.post(f"/api/v1/objectives/{obj['id']}/publish", headers=admin)
    return obj


class TestToggle:

    def test_default_off(self, app, client, org):
        res = client.get("/api/v1/rbac/me/features", headers=_headers(app, org["contributor_id"], org["tenant_id"]))
        assert res.status_code == 200
        assert res.get_json() == {"rbacInspector": False}

    def test_admin_enables_for_user(self, app, client, org):
        res = client.put(_inspector_url(org["contributor_id"]), json={"enabled": True},
                         headers=_headers(app, org["admin_id"], org["tenant_id"]))
        assert res.status_code == 200
        assert res.get_json()["rbacInspector"] is True
        log = AuditLog.query.filter_by(action="feature_flag.rbac_inspector").one()
        assert log.target_id == str(org["contributor_id"])
        assert log.meta["new"] is True

    def test_non_admin_denied(self, app, client, org):
        res = client.put(_inspector_url(org["contributor_id"]), json={"enabled": True},
                         headers=_headers(app, org["contributor_id"], org["tenant_id"]))
        assert res.status_code == 403
        assert AuditLog.query.count() == 0

    def test_enabled_must_be_boolean(self, app, client, org):
        res = client.put(_inspector_url(org["contributor_id"]), json={"enabled": "on"},
                         headers=_headers(app, org["admin_id"], org["tenant_id"]))
        assert res.status_code == 422

    def test_other_tenant_user_not_found(self, app, client, org):
        res = client.put(_inspector_url(org["other_admin_id"]), json={"enabled": True},
                         headers=_headers(app, org["admin_id"], org["tenant_id"]))
        assert res.status_code == 404

    def test_legacy_key_migrated_on_write(self, app, client, org):
        user = _db.session.get(User, org["contributor_id"])
        user.settings = {"debug": {"rbacInspectorEnabled": True}}
        _db.session.commit()
        assert get_user_features(user)["rbacInspector"] is True

        client.put(_inspector_url(org["contributor_id"]), json={"enabled": False},
                   headers=_headers(app, org["admin_id"], org["tenant_id"]))
        user = _db.session.get(User, org["contributor_id"])
        assert user.settings["features"] == {"rbacInspector": False}
        assert "rbacInspectorEnabled" not in user.settings.get("debug", {})


class TestExplainEndpoint:

    def test_without_flag(self, app, client, org, published_objective):
        res = client.get(
            f"/api/v1/rbac/explain?action=edit&objective_id={published_objective['id']}",
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        )
        assert res.status_code == 200
        data = res.get_json()
        assert data["allowed"] is False
        assert data["lock"]["reason"] == "published"
        assert "explain" not in data
        assert "reason" not in data

    def test_with_flag(self, app, client, org, published_objective):
        client.put(_inspector_url(org["contributor_id"]), json={"enabled": True},
                   headers=_headers(app, org["admin_id"], org["tenant_id"]))
        res = client.get(
            f"/api/v1/rbac/explain?action=edit&objective_id={published_objective['id']}",
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        )
        data = res.get_json()
        assert data["reason"] == "publish_lock"
        assert data["explain"]["tag"] == "tip-publish-lock"
        assert data["explain"]["resource"] == {"kind": "objective"}

    def test_allowed_for_admin(self, app, client, org, published_objective):
        res = client.get(
            f"/api/v1/rbac/explain?action=edit&objective_id={published_objective['id']}",
            headers=_headers(app, org["admin_id"], org["tenant_id"]),
        )
        assert res.get_json()["allowed"] is True

    def test_unknown_action(self, app, client, org, published_objective):
        res = client.get(
            f"/api/v1/rbac/explain?action=fly&objective_id={published_objective['id']}",
            headers=_headers(app, org["admin_id"], org["tenant_id"]),
        )
        assert res.status_code == 422

    def test_invisible_resource_is_404(self, app, client, org):
        obj = client.post(
            "/api/v1/objectives", json={"title": "Secret", "visibility_level": "PRIVATE"},
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        ).get_json()
        res = client.get(
            f"/api/v1/rbac/explain?action=view&objective_id={obj['id']}",
            headers=_headers(app, org["contributor2_id"], org["tenant_id"]),
        )
        assert res.status_code == 404

    def test_denial_body_carries_explain_when_flag_on(self, app, client, org, published_objective):
        client.put(_inspector_url(org["contributor_id"]), json={"enabled": True},
                   headers=_headers(app, org["admin_id"], org["tenant_id"]))
        res = client.patch(
            f"/api/v1/objectives/{published_objective['id']}", json={"title": "x"},
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        )
        assert res.status_code == 403
        explain = res.get_json()["explain"]
        assert explain["tag"] == "tip-publish-lock"
        assert explain["title"] == "Why can't I edit?"
