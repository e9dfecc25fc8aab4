"""
Reasoning / Explain surface — unit tests.
"""

import pytest

from okr_api.models import db as _db
from okr_api.models.auth import Tenant, User
from okr_api.services.access_context import Principal, ResourceContext
from okr_api.services.authorisation import Action, can_perform
from okr_api.services.explain import (
    EXEC_ONLY_MESSAGE,
    EXPLANATIONS,
    PRIVATE_VISIBILITY_MESSAGE,
    explain,
    explain_if_enabled,
    title_for,
)


def _p(user_id=10, roles=(), **kw):
    return Principal(user_id=user_id, acting_tenant_id=1, roles=frozenset(roles),
                     tenant_member=bool(roles), **kw)


def _res(**kw):
    kw.setdefault("owner_id", 99)
    return ResourceContext(kind="objective", tenant_id=1, id=7, **kw)


class TestExplain:

    def test_publish_lock_tag(self):
        d = can_perform(_p(user_id=99, roles={"CONTRIBUTOR"}), Action.EDIT, _res(is_published=True))
        out = explain(Action.EDIT, _res(is_published=True), d)
        assert out["tag"] == "tip-publish-lock"
        assert "Tenant Owner/Admin" in out["message"]
        assert out["title"] == "Why can't I edit?"
        assert out["reasonFlags"]["publishLock"] is True

    def test_cycle_lock_tag(self):
        res = _res(cycle_status="LOCKED")
        d = can_perform(_p(roles={"WORKSPACE_LEAD"}), Action.EDIT, res)
        assert explain(Action.EDIT, res, d)["tag"] == "tip-cycle-lock"

    def test_superuser_tag(self):
        d = can_perform(Principal(user_id=1, is_superuser=True), Action.DELETE, _res())
        out = explain(Action.DELETE, _res(), d)
        assert out["tag"] == "tip-superuser-readonly"
        assert out["reasonFlags"]["superuserReadonly"] is True

    def test_exec_only_vs_private(self):
        exec_res = _res(visibility_level="EXEC_ONLY", is_published=True)
        d = can_perform(_p(roles={"CONTRIBUTOR"}), Action.VIEW, exec_res)
        assert explain(Action.VIEW, exec_res, d)["message"] == EXEC_ONLY_MESSAGE

        priv = _res(visibility_level="PRIVATE")
        d = can_perform(_p(roles={"CONTRIBUTOR"}), Action.VIEW, priv)
        out = explain(Action.VIEW, priv, d)
        assert out["tag"] == "tip-private-visibility"
        assert out["message"] == PRIVATE_VISIBILITY_MESSAGE

    def test_no_identifiers_leak(self):
        res = _res(is_published=True)
        d = can_perform(_p(roles={"TENANT_VIEWER"}), Action.EDIT, res)
        out = explain(Action.EDIT, res, d)
        assert out["resource"] == {"kind": "objective"}
        assert "7" not in str(out["resource"])

    def test_allowed(self):
        d = can_perform(_p(roles={"TENANT_ADMIN"}), Action.EDIT, _res())
        out = explain(Action.EDIT, _res(), d)
        assert out["tag"] is None

    def test_tags_unique(self):
        tags = [tag for tag, _ in EXPLANATIONS.values()]
        assert len(tags) == len(set(tags))

    def test_title_for_multiword(self):
        assert title_for(Action.CHECK_IN) == "Why can't I check in?"


class TestExplainIfEnabled:

    @pytest.fixture()
    def user(self):
        t = Tenant(name="T", slug="t")
        _db.session.add(t)
        _db.session.flush()
        u = User(tenant_id=t.id, email="u@t.test")
        _db.session.add(u)
        _db.session.commit()
        return u

    def test_flag_off_returns_none(self, user):
        d = can_perform(_p(roles={"TENANT_VIEWER"}), Action.CREATE, _res())
        assert explain_if_enabled(user, Action.CREATE, _res(), d) is None

    def test_flag_on(self, user):
        user.settings = {"features": {"rbacInspector": True}}
        _db.session.commit()
        d = can_perform(_p(roles={"TENANT_VIEWER"}), Action.CREATE, _res())
        assert explain_if_enabled(user, Action.CREATE, _res(), d)["tag"] == "tip-rbac"

    def test_legacy_debug_flag_honoured(self, user):
        user.settings = {"debug": {"rbacInspectorEnabled": True}}
        _db.session.commit()
        d = can_perform(_p(roles={"TENANT_VIEWER"}), Action.CREATE, _res())
        assert explain_if_enabled(user, Action.CREATE, _res(), d) is not None

    def test_no_user(self):
        d = can_perform(_p(roles={"TENANT_VIEWER"}), Action.CREATE, _res())
        assert explain_if_enabled(None, Action.CREATE, _res(), d) is None
