"""
Effective Permission Evaluator — unit tests (no DB).

Test blocks:
  1. Superuser override
  2. Tenant boundary
  3. RBAC base grants
  4. Publish / cycle lock
  5. Visibility in decisions
  6. Purity / idempotence
"""

import pytest

from okr_api.services.access_context import Principal, ResourceContext
from okr_api.services.authorisation import (
    GENERIC_DENIAL_MESSAGE,
    Action,
    DenialReason,
    can_perform,
    rbac_grants,
)
from okr_api.services.publish_lock import LockReason

TENANT = 1
OTHER_TENANT = 2


def _principal(user_id=10, roles=(), tenant_id=TENANT, **kw):
    return Principal(
        user_id=user_id,
        acting_tenant_id=tenant_id,
        roles=frozenset(roles),
        tenant_member=bool(roles),
        **kw,
    )


def _objective(tenant_id=TENANT, owner_id=99, **kw):
    return ResourceContext(kind="objective", tenant_id=tenant_id, id=1, owner_id=owner_id, **kw)


SUPERUSER = Principal(user_id=1, is_superuser=True, acting_tenant_id=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Block 1: Superuser override
# ═══════════════════════════════════════════════════════════════════════════════

class TestSuperuser:

    @pytest.mark.parametrize("tenant_id", [TENANT, OTHER_TENANT, 12345])
    def test_view_allowed_in_any_tenant(self, tenant_id):
        res = _objective(tenant_id=tenant_id, visibility_level="PRIVATE")
        assert can_perform(SUPERUSER, Action.VIEW, res).allowed is True

    @pytest.mark.parametrize("action", [
        Action.EDIT, Action.DELETE, Action.CREATE, Action.PUBLISH,
        Action.UNPUBLISH, Action.CHECK_IN, Action.MANAGE_WHITELIST,
    ])
    def test_every_write_denied_readonly(self, action):
        d = can_perform(SUPERUSER, action, _objective())
        assert d.allowed is False
        assert d.primary is DenialReason.SUPERUSER_READONLY
        assert d.reasons.superuser_readonly is True
        assert "read-only" in d.message

    def test_readonly_wins_over_lock(self):
        d = can_perform(SUPERUSER, Action.EDIT, _objective(is_published=True))
        assert d.primary is DenialReason.SUPERUSER_READONLY

    def test_unresolved_context_denies_even_view(self):
        su = Principal(user_id=1, is_superuser=True, tenant_resolved=False)
        d = can_perform(su, Action.VIEW, _objective())
        assert d.allowed is False
        assert d.primary is DenialReason.TENANT_MISMATCH


# ═══════════════════════════════════════════════════════════════════════════════
# Block 2: Tenant boundary
# ═══════════════════════════════════════════════════════════════════════════════

class TestTenantBoundary:

    def test_admin_of_other_tenant_denied(self):
        p = _principal(roles={"TENANT_ADMIN"}, tenant_id=OTHER_TENANT)
        d = can_perform(p, Action.EDIT, _objective())
        assert d.allowed is False
        assert d.primary is DenialReason.TENANT_MISMATCH
        assert d.reasons.tenant is True

    def test_unresolved_tenant_fails_closed(self):
        p = Principal(user_id=10, acting_tenant_id=None, tenant_resolved=False,
                      roles=frozenset({"TENANT_OWNER"}))
        d = can_perform(p, Action.VIEW, _objective())
        assert d.primary is DenialReason.TENANT_MISMATCH

    def test_anonymous_denied(self):
        d = can_perform(Principal(user_id=None, acting_tenant_id=TENANT), Action.VIEW, _objective())
        assert d.allowed is False

    def test_tenant_checked_before_rbac(self):
        p = _principal(roles={"TENANT_VIEWER"}, tenant_id=OTHER_TENANT)
        d = can_perform(p, Action.CREATE, _objective())
        assert d.primary is DenialReason.TENANT_MISMATCH
        assert d.reasons.rbac is True


# ═══════════════════════════════════════════════════════════════════════════════
# Block 3: RBAC base grants
# ═══════════════════════════════════════════════════════════════════════════════

class TestRbacGrants:

    def test_tenant_viewer_cannot_create(self):
        d = can_perform(_principal(roles={"TENANT_VIEWER"}), Action.CREATE, _objective())
        assert d.allowed is False
        assert d.primary is DenialReason.RBAC
        assert d.message == GENERIC_DENIAL_MESSAGE

    def test_team_viewer_cannot_check_in(self):
        d = can_perform(_principal(roles={"TEAM_VIEWER"}), Action.CHECK_IN, _objective())
        assert d.primary is DenialReason.RBAC

    def test_contributor_can_create(self):
        assert can_perform(_principal(roles={"CONTRIBUTOR"}), Action.CREATE, _objective()).allowed

    def test_contributor_edits_own_but_not_others(self):
        p = _principal(user_id=10, roles={"CONTRIBUTOR"})
        assert can_perform(p, Action.EDIT, _objective(owner_id=10)).allowed
        assert not can_perform(p, Action.EDIT, _objective(owner_id=11)).allowed

    def test_contributor_cannot_delete_even_own(self):
        p = _principal(user_id=10, roles={"CONTRIBUTOR"})
        d = can_perform(p, Action.DELETE, _objective(owner_id=10))
        assert d.primary is DenialReason.RBAC

    def test_workspace_member_deletes_own(self):
        p = _principal(user_id=10, roles={"WORKSPACE_MEMBER"})
        assert can_perform(p, Action.DELETE, _objective(owner_id=10)).allowed

    def test_viewer_owner_cannot_edit(self):
        p = _principal(user_id=10, roles={"TENANT_VIEWER"})
        assert not can_perform(p, Action.EDIT, _objective(owner_id=10)).allowed

    def test_lead_can_publish_but_not_unpublish(self):
        p = _principal(roles={"WORKSPACE_LEAD"})
        assert can_perform(p, Action.PUBLISH, _objective()).allowed
        assert not can_perform(p, Action.UNPUBLISH, _objective(is_published=True)).allowed

    @pytest.mark.parametrize("action", [
        Action.MANAGE_WHITELIST, Action.MANAGE_ROLES, Action.MANAGE_CYCLES,
        Action.MANAGE_SETTINGS, Action.VIEW_AUDIT,
    ])
    def test_admin_actions_need_tenant_admin(self, action):
        tenant = ResourceContext(kind="tenant", tenant_id=TENANT)
        assert can_perform(_principal(roles={"TENANT_ADMIN"}), action, tenant).allowed
        assert not can_perform(_principal(roles={"WORKSPACE_LEAD"}), action, tenant).allowed

    def test_billing_owner_only(self):
        tenant = ResourceContext(kind="tenant", tenant_id=TENANT)
        assert can_perform(_principal(roles={"TENANT_OWNER"}), Action.MANAGE_BILLING, tenant).allowed
        assert not can_perform(_principal(roles={"TENANT_ADMIN"}), Action.MANAGE_BILLING, tenant).allowed

    def test_union_most_permissive_wins(self):
        """TENANT_VIEWER at tenant + WORKSPACE_LEAD at workspace → may edit."""
        p = _principal(roles={"TENANT_VIEWER", "WORKSPACE_LEAD"})
        assert rbac_grants(p, Action.EDIT, _objective()) is True

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            can_perform(_principal(roles={"TENANT_ADMIN"}), "launch_rockets", _objective())


# ═══════════════════════════════════════════════════════════════════════════════
# Block 4: Publish / cycle lock
# ═══════════════════════════════════════════════════════════════════════════════

class TestLock:

    @pytest.mark.parametrize("roles", [
        {"CONTRIBUTOR"}, {"WORKSPACE_LEAD"}, {"TEAM_LEAD"}, {"WORKSPACE_ADMIN"},
    ])
    def test_published_active_denies_non_admin_edit(self, roles):
        p = _principal(user_id=10, roles=roles)
        res = _objective(owner_id=10, is_published=True, cycle_status="ACTIVE")
        d = can_perform(p, Action.EDIT, res)
        assert d.allowed is False
        assert d.primary is DenialReason.PUBLISH_LOCK
        assert d.reasons.publish_lock is True
        assert "Tenant Owner/Admin" in d.message
        assert d.lock.reason is LockReason.PUBLISHED

    @pytest.mark.parametrize("role", ["TENANT_OWNER", "TENANT_ADMIN"])
    def test_tenant_admin_overrides_lock(self, role):
        res = _objective(is_published=True, cycle_status="LOCKED")
        assert can_perform(_principal(roles={role}), Action.EDIT, res).allowed

    def test_cycle_lock_on_unpublished(self):
        p = _principal(roles={"WORKSPACE_LEAD"})
        res = ResourceContext(kind="key_result", tenant_id=TENANT, id=5, cycle_status="LOCKED")
        d = can_perform(p, Action.EDIT, res)
        assert d.primary is DenialReason.PUBLISH_LOCK
        assert d.lock.reason is LockReason.CYCLE_LOCKED
        assert "cycle is locked" in d.message

    def test_check_in_is_locked(self):
        p = _principal(user_id=10, roles={"CONTRIBUTOR"})
        res = _objective(owner_id=10, is_published=True)
        assert can_perform(p, Action.CHECK_IN, res).primary is DenialReason.PUBLISH_LOCK

    def test_view_not_locked(self):
        p = _principal(roles={"CONTRIBUTOR"})
        assert can_perform(p, Action.VIEW, _objective(is_published=True, cycle_status="ARCHIVED")).allowed

    def test_rbac_reported_before_lock(self):
        p = _principal(roles={"TENANT_VIEWER"})
        d = can_perform(p, Action.EDIT, _objective(is_published=True))
        assert d.primary is DenialReason.RBAC
        assert d.reasons.publish_lock is True

    def test_non_content_never_locked(self):
        tenant = ResourceContext(kind="tenant", tenant_id=TENANT, is_published=True)
        assert can_perform(_principal(roles={"TENANT_ADMIN"}), Action.MANAGE_CYCLES, tenant).lock.is_locked is False


# ═══════════════════════════════════════════════════════════════════════════════
# Block 5: Visibility in decisions
# ═══════════════════════════════════════════════════════════════════════════════

class TestVisibilityInDecisions:

    def test_private_edit_by_lead_denied_visibility(self):
        p = _principal(roles={"WORKSPACE_LEAD"})
        d = can_perform(p, Action.EDIT, _objective(visibility_level="PRIVATE"))
        assert d.primary is DenialReason.VISIBILITY
        assert d.reasons.visibility_private is True
        assert d.reasons.exec_only_flag is False

    def test_exec_only_sets_exec_flag(self):
        p = _principal(roles={"CONTRIBUTOR"})
        d = can_perform(p, Action.VIEW, _objective(visibility_level="EXEC_ONLY", is_published=True))
        assert d.primary is DenialReason.VISIBILITY
        assert d.reasons.exec_only_flag is True
        assert d.reasons.visibility_private is False

    def test_whitelisted_contributor_sees_exec_only(self):
        p = _principal(user_id=10, roles={"CONTRIBUTOR"})
        res = _objective(visibility_level="EXEC_ONLY", is_published=True, exec_whitelist=frozenset({10}))
        assert can_perform(p, Action.VIEW, res).allowed


# ═══════════════════════════════════════════════════════════════════════════════
# Block 6: Purity / idempotence
# ═══════════════════════════════════════════════════════════════════════════════

class TestPurity:

    def test_same_inputs_same_decision(self):
        p = _principal(user_id=10, roles={"CONTRIBUTOR"})
        res = _objective(owner_id=10, is_published=True)
        first = can_perform(p, Action.EDIT, res)
        second = can_perform(p, Action.EDIT, res)
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_string_action_accepted(self):
        p = _principal(roles={"TENANT_ADMIN"})
        assert can_perform(p, "edit", _objective()).action is Action.EDIT

    def test_decision_to_dict_shape(self):
        d = can_perform(_principal(roles={"TENANT_VIEWER"}), Action.CREATE, _objective())
        body = d.to_dict()
        assert body["allowed"] is False
        assert body["reason"] == "rbac"
        assert set(body["reasons"]) == {
            "rbac", "publishLock", "tenant", "visibilityPrivate", "execOnlyFlag", "superuserReadonly",
        }
