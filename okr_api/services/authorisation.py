"""
Effective Permission Evaluator — the single authorisation decision function.

    can_perform(principal, action, resource) -> Decision

Pure: no DB access, no mutation, no clock. Every mutating endpoint and the
content read endpoints call it (through okr_service / cycle_service), so the
rules below exist in exactly one place.

Decision order (first failing check is the primary reason; every flag is
still computed so the explain surface can show the full picture):

    1. tenant match        resource.tenant_id == acting tenant; an
                           unresolved tenant context always fails
    2. superuser override  superusers may only read; every other action is
                           denied, ahead of all other rules
    3. RBAC base grant     does any effective role grant the action at all
    4. publish lock        edit / delete / check_in on locked content need
                           TENANT_OWNER / TENANT_ADMIN
    5. visibility          content actions need the resource to be visible

A denial is a normal return value. ``AuthorizationDenied`` is raised by the
service layer, not here.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from okr_api.services.access_context import Principal, ResourceContext
from okr_api.services.publish_lock import UNLOCKED, LockInfo, lock_for
from okr_api.services.roles import (
    AUTHOR_ROLES,
    CONTRIBUTOR_ROLES,
    LEAD_ROLES,
    TENANT_ADMIN_ROLES,
    Role,
)
from okr_api.services.visibility import can_view, is_exec_only

logger = logging.getLogger(__name__)


class Action(str, Enum):
    VIEW = "view"
    EXPORT = "export"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    CHECK_IN = "check_in"
    MANAGE_WHITELIST = "manage_whitelist"
    MANAGE_ROLES = "manage_roles"
    MANAGE_CYCLES = "manage_cycles"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_BILLING = "manage_billing"
    VIEW_AUDIT = "view_audit"


class DenialReason(str, Enum):
    TENANT_MISMATCH = "tenant_mismatch"
    SUPERUSER_READONLY = "superuser_readonly"
    RBAC = "rbac"
    PUBLISH_LOCK = "publish_lock"
    VISIBILITY = "visibility"


READ_ACTIONS = frozenset({Action.VIEW, Action.EXPORT})
LOCKED_ACTIONS = frozenset({Action.EDIT, Action.DELETE, Action.CHECK_IN})
ADMIN_ACTIONS = frozenset({
    Action.MANAGE_WHITELIST, Action.MANAGE_ROLES, Action.MANAGE_CYCLES,
    Action.MANAGE_SETTINGS, Action.VIEW_AUDIT,
})

GENERIC_DENIAL_MESSAGE = "You do not have permission to perform this action."
SUPERUSER_READONLY_MESSAGE = (
    "Platform administrator (superuser) access is read-only for tenant OKR content."
)


@dataclass(frozen=True)
class ReasonFlags:
    """True means "this check blocks the action"."""

    rbac: bool = False
    publish_lock: bool = False
    tenant: bool = False
    visibility_private: bool = False
    exec_only_flag: bool = False
    superuser_readonly: bool = False

    def to_dict(self) -> dict:
        return {
            "rbac": self.rbac,
            "publishLock": self.publish_lock,
            "tenant": self.tenant,
            "visibilityPrivate": self.visibility_private,
            "execOnlyFlag": self.exec_only_flag,
            "superuserReadonly": self.superuser_readonly,
        }


@dataclass(frozen=True)
class Decision:
    allowed: bool
    action: Action
    primary: DenialReason | None
    reasons: ReasonFlags
    lock: LockInfo = UNLOCKED

    @property
    def message(self) -> str:
        if self.allowed:
            return ""
        if self.primary is DenialReason.PUBLISH_LOCK:
            return self.lock.message
        if self.primary is DenialReason.SUPERUSER_READONLY:
            return SUPERUSER_READONLY_MESSAGE
        return GENERIC_DENIAL_MESSAGE

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "action": self.action.value,
            "reason": self.primary.value if self.primary else None,
            "reasons": self.reasons.to_dict(),
            "lock": self.lock.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# Rule helpers
# ═══════════════════════════════════════════════════════════════

def _is_owner(principal: Principal, resource: ResourceContext) -> bool:
    return resource.owner_id is not None and resource.owner_id == principal.user_id


def _has_tenant_admin(principal: Principal) -> bool:
    return bool(principal.roles & TENANT_ADMIN_ROLES)


def rbac_grants(principal: Principal, action: Action, resource: ResourceContext) -> bool:
    """Base role grant for ``action``, ignoring lock and visibility."""
    roles = principal.roles
    admin = _has_tenant_admin(principal)
    owner = _is_owner(principal, resource)

    if action in READ_ACTIONS:
        return bool(roles) or principal.tenant_member or owner
    if action in (Action.CREATE, Action.CHECK_IN):
        return bool(roles & AUTHOR_ROLES)
    if action is Action.EDIT:
        return (
            admin
            or bool(roles & (LEAD_ROLES | {Role.WORKSPACE_ADMIN.value}))
            or (owner and bool(roles & AUTHOR_ROLES))
        )
    if action is Action.DELETE:
        return (
            admin
            or bool(roles & (LEAD_ROLES | {Role.WORKSPACE_ADMIN.value}))
            or (owner and bool(roles & (AUTHOR_ROLES - CONTRIBUTOR_ROLES)))
        )
    if action is Action.PUBLISH:
        return admin or bool(roles & LEAD_ROLES)
    if action is Action.UNPUBLISH:
        return admin
    if action in ADMIN_ACTIONS:
        return admin
    if action is Action.MANAGE_BILLING:
        return Role.TENANT_OWNER.value in roles
    return False


# ═══════════════════════════════════════════════════════════════
# Evaluator
# ═══════════════════════════════════════════════════════════════

def can_perform(principal: Principal, action, resource: ResourceContext) -> Decision:
    """Decide whether ``principal`` may perform ``action`` on ``resource``."""
    action = Action(action)
    lock = lock_for(resource)

    tenant_fail = (
        not principal.tenant_resolved
        or principal.user_id is None
        or (not principal.is_superuser and resource.tenant_id != principal.acting_tenant_id)
        or (principal.is_superuser and action not in READ_ACTIONS)
    )

    if principal.is_superuser:
        readonly = action not in READ_ACTIONS
        flags = ReasonFlags(tenant=tenant_fail, superuser_readonly=readonly)
        if readonly:
            return Decision(False, action, DenialReason.SUPERUSER_READONLY, flags, lock)
        if tenant_fail:
            return Decision(False, action, DenialReason.TENANT_MISMATCH, flags, lock)
        return Decision(True, action, None, flags, lock)

    rbac_fail = not rbac_grants(principal, action, resource)
    lock_fail = (
        action in LOCKED_ACTIONS
        and lock.is_locked
        and not _has_tenant_admin(principal)
    )
    visibility_fail = resource.is_content and not can_view(principal, resource)

    flags = ReasonFlags(
        rbac=rbac_fail,
        publish_lock=lock_fail,
        tenant=tenant_fail,
        visibility_private=visibility_fail and not is_exec_only(resource),
        exec_only_flag=visibility_fail and is_exec_only(resource),
    )

    for failed, reason in (
        (tenant_fail, DenialReason.TENANT_MISMATCH),
        (rbac_fail, DenialReason.RBAC),
        (lock_fail, DenialReason.PUBLISH_LOCK),
        (visibility_fail, DenialReason.VISIBILITY),
    ):
        if failed:
            return Decision(False, action, reason, flags, lock)
    return Decision(True, action, None, flags, lock)


def log_denial(decision: Decision, principal: Principal, resource: ResourceContext) -> None:
    """Structured WARNING for a denied decision (picked up by JSONFormatter)."""
    logger.warning(
        "Denied %s on %s id=%s for user %s: %s",
        decision.action.value,
        resource.kind,
        resource.id,
        principal.user_id,
        decision.primary.value if decision.primary else None,
        extra={
            "event_type": "authz_denied",
            "tenant_id": principal.acting_tenant_id,
            "security_code": decision.primary.value if decision.primary else None,
        },
    )
