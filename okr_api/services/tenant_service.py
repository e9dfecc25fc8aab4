"""
Tenant Service — exec-only whitelist, tenant policy settings, audit trail.

All operations act on the caller's own tenant and are gated by the
evaluator (manage_whitelist / manage_settings / view_audit), which grants
them to TENANT_OWNER and TENANT_ADMIN only.
"""

import logging

from okr_api.core.exceptions import NotFoundError, ValidationError
from okr_api.models import db
from okr_api.models.audit import AuditLog, write_audit
from okr_api.models.auth import Tenant, User
from okr_api.services.authorisation import Action
from okr_api.services.helpers.guards import authorize_tenant_admin, check_requested_tenant

logger = logging.getLogger(__name__)


def _tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError(resource="Tenant", resource_id=tenant_id)
    return tenant


# ═══════════════════════════════════════════════════════════════
# Exec-only whitelist
# ═══════════════════════════════════════════════════════════════

def get_exec_whitelist(ctx, user) -> list[int]:
    authorize_tenant_admin(ctx, user, Action.MANAGE_WHITELIST)
    return _tenant(ctx.tenant_id).whitelist_ids()


def add_to_exec_whitelist(ctx, user, data: dict) -> list[int]:
    """Add a same-tenant user. Adding an existing member is a no-op (no audit row)."""
    check_requested_tenant(ctx, user, Action.MANAGE_WHITELIST, data)
    authorize_tenant_admin(ctx, user, Action.MANAGE_WHITELIST)

    try:
        target_id = int(data.get("user_id"))
    except (TypeError, ValueError):
        raise ValidationError("user_id is required", details={"user_id": "required"}) from None
    target = db.session.get(User, target_id)
    if target is None or target.tenant_id != ctx.tenant_id:
        raise ValidationError(
            "Whitelisted users must belong to this organization",
            details={"user_id": "not a member"},
        )

    tenant = _tenant(ctx.tenant_id)
    current = tenant.whitelist_ids()
    if target_id in current:
        return current

    tenant.exec_only_whitelist = current + [target_id]
    write_audit(
        action="exec_whitelist.add",
        target_type="tenant",
        target_id=tenant.id,
        tenant_id=tenant.id,
        actor_user_id=user.id,
        metadata={"user_id": target_id},
    )
    db.session.commit()
    logger.info("User %s added to exec whitelist of tenant %s by %s", target_id, tenant.id, user.id)
    return tenant.whitelist_ids()


def remove_from_exec_whitelist(ctx, user, target_id: int) -> list[int]:
    authorize_tenant_admin(ctx, user, Action.MANAGE_WHITELIST)
    tenant = _tenant(ctx.tenant_id)
    current = tenant.whitelist_ids()
    if target_id not in current:
        raise NotFoundError(resource="ExecWhitelistEntry", resource_id=target_id)

    tenant.exec_only_whitelist = [uid for uid in current if uid != target_id]
    write_audit(
        action="exec_whitelist.remove",
        target_type="tenant",
        target_id=tenant.id,
        tenant_id=tenant.id,
        actor_user_id=user.id,
        metadata={"user_id": target_id},
    )
    db.session.commit()
    logger.info("User %s removed from exec whitelist of tenant %s by %s", target_id, tenant.id, user.id)
    return tenant.whitelist_ids()


# ═══════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════

def update_settings(ctx, user, data: dict) -> Tenant:
    check_requested_tenant(ctx, user, Action.MANAGE_SETTINGS, data)
    authorize_tenant_admin(ctx, user, Action.MANAGE_SETTINGS)

    field = "allow_tenant_admin_exec_visibility"
    if field not in data:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if not isinstance(data[field], bool):
        raise ValidationError(f"{field} must be a boolean", details={field: "not a boolean"})

    tenant = _tenant(ctx.tenant_id)
    old = bool(tenant.allow_tenant_admin_exec_visibility)
    if old != data[field]:
        tenant.allow_tenant_admin_exec_visibility = data[field]
        write_audit(
            action="tenant.settings_update",
            target_type="tenant",
            target_id=tenant.id,
            tenant_id=tenant.id,
            actor_user_id=user.id,
            metadata={field: {"old": old, "new": data[field]}},
        )
    db.session.commit()
    return tenant


# ═══════════════════════════════════════════════════════════════
# Audit trail
# ═══════════════════════════════════════════════════════════════

def audit_query(ctx, user, *, action=None, target_type=None, target_id=None):
    """Newest-first audit query for the acting tenant (caller paginates)."""
    authorize_tenant_admin(ctx, user, Action.VIEW_AUDIT)
    q = AuditLog.query.filter_by(tenant_id=ctx.tenant_id)
    if action:
        q = q.filter_by(action=action)
    if target_type:
        q = q.filter_by(target_type=target_type)
    if target_id is not None:
        q = q.filter_by(target_id=str(target_id))
    return q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
