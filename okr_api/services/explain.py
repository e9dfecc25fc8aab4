"""
Reasoning / Explain surface — "Why can't I …?" for the RBAC inspector.

Projects an evaluator ``Decision`` into a user-displayable explanation.
Only rendered for users whose ``rbacInspector`` feature flag is on; everyone
else sees allowed / denied only.

The explanation talks about the resource already in the caller's hands and
nothing else: it carries the resource kind, never identifiers, titles or
owners, so it cannot disclose anything about other tenants' data.

Each primary reason (split by lock reason and by EXEC_ONLY vs other
visibility) maps to exactly one canonical message and one stable tag that UI
tests select on, e.g. ``tip-publish-lock``.
"""

from okr_api.services.authorisation import (
    GENERIC_DENIAL_MESSAGE,
    SUPERUSER_READONLY_MESSAGE,
    Decision,
    DenialReason,
)
from okr_api.services.publish_lock import CYCLE_LOCK_MESSAGE, PUBLISH_LOCK_MESSAGE, LockReason

PRIVATE_VISIBILITY_MESSAGE = "PRIVATE OKRs require explicit access permission."
EXEC_ONLY_MESSAGE = (
    "EXEC_ONLY published OKRs require tenant admin with allowTenantAdminExecVisibility flag."
)
TENANT_BOUNDARY_MESSAGE = "This action is outside your current organization."

# (primary reason, qualifier) -> (tag, message)
EXPLANATIONS: dict[tuple[DenialReason, str | None], tuple[str, str]] = {
    (DenialReason.SUPERUSER_READONLY, None): ("tip-superuser-readonly", SUPERUSER_READONLY_MESSAGE),
    (DenialReason.TENANT_MISMATCH, None): ("tip-tenant-boundary", TENANT_BOUNDARY_MESSAGE),
    (DenialReason.RBAC, None): ("tip-rbac", GENERIC_DENIAL_MESSAGE),
    (DenialReason.PUBLISH_LOCK, LockReason.PUBLISHED.value): ("tip-publish-lock", PUBLISH_LOCK_MESSAGE),
    (DenialReason.PUBLISH_LOCK, LockReason.CYCLE_LOCKED.value): ("tip-cycle-lock", CYCLE_LOCK_MESSAGE),
    (DenialReason.VISIBILITY, "exec_only"): ("tip-exec-only", EXEC_ONLY_MESSAGE),
    (DenialReason.VISIBILITY, "private"): ("tip-private-visibility", PRIVATE_VISIBILITY_MESSAGE),
}


def _qualifier(decision: Decision) -> str | None:
    if decision.primary is DenialReason.PUBLISH_LOCK:
        return decision.lock.reason.value if decision.lock.reason else LockReason.PUBLISHED.value
    if decision.primary is DenialReason.VISIBILITY:
        return "exec_only" if decision.reasons.exec_only_flag else "private"
    return None


def title_for(action) -> str:
    verb = getattr(action, "value", action).replace("_", " ")
    return f"Why can't I {verb}?"


def explain(action, resource, decision: Decision) -> dict:
    """Build the explanation payload for one decision."""
    if decision.allowed:
        return {
            "title": title_for(action),
            "message": "This action is allowed.",
            "tag": None,
            "resource": {"kind": resource.kind},
            "reasonFlags": decision.reasons.to_dict(),
        }
    tag, message = EXPLANATIONS[(decision.primary, _qualifier(decision))]
    return {
        "title": title_for(action),
        "message": message,
        "tag": tag,
        "resource": {"kind": resource.kind},
        "reasonFlags": decision.reasons.to_dict(),
    }


def explain_if_enabled(user, action, resource, decision: Decision) -> dict | None:
    """``explain`` gated by the caller's rbacInspector flag; None when off."""
    from okr_api.services.feature_flag_service import is_rbac_inspector_enabled

    if user is None or not is_rbac_inspector_enabled(user):
        return None
    return explain(action, resource, decision)
