"""
Tenant context resolution — token claim, X-Tenant-Id header, subdomain,
superuser platform scope, legacy field normalisation.
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from okr_api.middleware.tenant_context import normalize_tenant_fields, subdomain_slug
from okr_api.models import db as _db
from okr_api.models.auth import Tenant, User
from okr_api.services.jwt_service import generate_token_pair


def _headers(app, user_id, tenant_id):
    with app.app_context():
        tokens = generate_token_pair(user_id, tenant_id, [])
    return {
        "Authorization": f"Bearer {tokens['access_token']}",
        "Content-Type": "application/json",
    }


def _raw_token(app, payload):
    now = datetime.now(timezone.utc)
    body = {"type": "access", "iat": now, "exp": now + timedelta(minutes=5), **payload}
    return pyjwt.encode(body, app.config["JWT_SECRET_KEY"], algorithm="HS256")


# ═══════════════════════════════════════════════════════════════════════════════
# Block 1: Pure helpers
# ═══════════════════════════════════════════════════════════════════════════════

class TestNormalizeTenantFields:

    @pytest.mark.parametrize("legacy", ["organizationId", "organization_id", "orgId", "tenantId"])
    def test_rewrites_legacy_key(self, legacy):
        body = {legacy: 7, "title": "x"}
        seen = normalize_tenant_fields(body)
        assert body == {"tenant_id": 7, "title": "x"}
        assert seen == [legacy]

    def test_canonical_wins(self):
        body = {"tenant_id": 1, "organizationId": 2}
        normalize_tenant_fields(body)
        assert body == {"tenant_id": 1}

    def test_nothing_to_do(self):
        body = {"title": "x"}
        assert normalize_tenant_fields(body) == []
        assert body == {"title": "x"}


class TestSubdomainSlug:

    @pytest.mark.parametrize("host,expected", [
        ("acme.okr.example.com", "acme"),
        ("acme.okr.example.com:8443", "acme"),
        ("www.okr.example.com", None),
        ("okr.example", None),
        ("localhost", None),
        ("10.0.0.1", None),
        ("", None),
    ])
    def test_without_base(self, host, expected):
        assert subdomain_slug(host) == expected

    def test_with_base(self):
        assert subdomain_slug("acme.okr.example.com", "okr.example.com") == "acme"
        assert subdomain_slug("acme.other.com", "okr.example.com") is None
        assert subdomain_slug("okr.example.com", "okr.example.com") is None


# ═══════════════════════════════════════════════════════════════════════════════
# Block 2: Authenticated requests
# ═══════════════════════════════════════════════════════════════════════════════

class TestTokenResolution:

    def test_no_token_is_401(self, client, org):
        res = client.get("/api/v1/objectives")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_invalid_token_is_401(self, client, org):
        res = client.get("/api/v1/objectives", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_expired_token_is_401(self, app, client, org):
        now = datetime.now(timezone.utc)
        token = _raw_token(app, {
            "sub": str(org["admin_id"]), "tenant_id": org["tenant_id"],
            "iat": now - timedelta(hours=1), "exp": now - timedelta(minutes=1),
        })
        res = client.get("/api/v1/objectives", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_token_tenant_used(self, app, client, org):
        res = client.get("/api/v1/tenant/current", headers=_headers(app, org["admin_id"], org["tenant_id"]))
        assert res.status_code == 200
        data = res.get_json()
        assert data["tenant"]["slug"] == "acme"
        assert data["source"] == "token"

    def test_claim_mismatch_fails_closed(self, app, client, org):
        res = client.get(
            "/api/v1/objectives",
            headers=_headers(app, org["contributor_id"], org["tenant2_id"]),
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_TENANT_CONTEXT"

    def test_missing_claim_fails_closed(self, app, client, org):
        token = _raw_token(app, {"sub": str(org["admin_id"])})
        res = client.get("/api/v1/objectives", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_TENANT_CONTEXT"

    def test_header_cannot_override_token(self, app, client, org):
        headers = _headers(app, org["admin_id"], org["tenant_id"])
        headers["X-Tenant-Id"] = "globex"
        res = client.get("/api/v1/tenant/current", headers=headers)
        assert res.get_json()["tenant"]["slug"] == "acme"

    def test_inactive_user(self, app, client, org):
        _db.session.get(User, org["admin_id"]).status = "suspended"
        _db.session.commit()
        res = client.get("/api/v1/objectives", headers=_headers(app, org["admin_id"], org["tenant_id"]))
        assert res.status_code == 403

    def test_deactivated_tenant(self, app, client, org):
        _db.session.get(Tenant, org["tenant_id"]).is_active = False
        _db.session.commit()
        res = client.get("/api/v1/objectives", headers=_headers(app, org["admin_id"], org["tenant_id"]))
        assert res.status_code == 403
        assert "deactivated" in res.get_json()["error"]


class TestSuperuserScope:

    def test_null_claim_is_platform_scope(self, app, client, org):
        res = client.get(
            f"/api/v1/objectives?tenant_id={org['tenant_id']}",
            headers=_headers(app, org["superuser_id"], None),
        )
        assert res.status_code == 200

    def test_superuser_with_tenant_claim_fails_closed(self, app, client, org):
        res = client.get(
            "/api/v1/objectives",
            headers=_headers(app, org["superuser_id"], org["tenant_id"]),
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_TENANT_CONTEXT"

    def test_tenant_only_endpoint_refuses_platform_scope(self, app, client, org):
        res = client.get("/api/v1/cycles", headers=_headers(app, org["superuser_id"], None))
        assert res.status_code == 403

    def test_legacy_query_param_normalised(self, app, client, org):
        res = client.get(
            f"/api/v1/objectives?organizationId={org['tenant_id']}",
            headers=_headers(app, org["superuser_id"], None),
        )
        assert res.status_code == 200


# ═══════════════════════════════════════════════════════════════════════════════
# Block 3: Unauthenticated resolution (header, subdomain)
# ═══════════════════════════════════════════════════════════════════════════════

class TestAnonymousResolution:

    def test_header_slug(self, client, org):
        res = client.get("/api/v1/tenant/current", headers={"X-Tenant-Id": "globex"})
        assert res.status_code == 200
        assert res.get_json()["tenant"]["id"] == org["tenant2_id"]
        assert res.get_json()["source"] == "header"

    def test_header_numeric(self, client, org):
        res = client.get("/api/v1/tenant/current", headers={"X-Tenant-Id": str(org["tenant_id"])})
        assert res.get_json()["tenant"]["slug"] == "acme"

    def test_subdomain(self, client, org):
        res = client.get("/api/v1/tenant/current", base_url="http://acme.okr.example.com")
        assert res.status_code == 200
        assert res.get_json()["source"] == "subdomain"

    def test_unresolved_is_404(self, client, org):
        res = client.get("/api/v1/tenant/current", headers={"X-Tenant-Id": "nope"})
        assert res.status_code == 404

    def test_header_does_not_authenticate(self, client, org):
        res = client.get("/api/v1/objectives", headers={"X-Tenant-Id": "acme"})
        assert res.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════════
# Block 4: Legacy body fields
# ═══════════════════════════════════════════════════════════════════════════════

class TestLegacyBodyFields:

    def test_foreign_organization_id_denied(self, app, client, org):
        res = client.post(
            "/api/v1/objectives",
            json={"title": "Grow", "organizationId": org["tenant2_id"]},
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_AUTHZ_TENANT_MISMATCH"

    def test_own_organization_id_accepted(self, app, client, org):
        res = client.post(
            "/api/v1/objectives",
            json={"title": "Grow", "orgId": org["tenant_id"]},
            headers=_headers(app, org["contributor_id"], org["tenant_id"]),
        )
        assert res.status_code == 201
        assert res.get_json()["tenant_id"] == org["tenant_id"]
