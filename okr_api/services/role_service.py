"""
Role Assignment Store — scope-aware role lookup with cache.

Scope hierarchy:
  tenant < workspace < team

get_effective_roles() unions every assignment whose scope matches one of
the levels present in the query (tenant always; workspace and team when
given). A team-scoped query also includes the team's workspace. There is no
role-inheritance graph beyond this union: when roles overlap, the most
permissive one simply wins because every granted role is present.

Zero assignments is a normal outcome (empty set), never an error.
"""

import logging
import threading
import time
from typing import Optional

from flask import current_app, has_app_context
from sqlalchemy import and_, or_

from okr_api.core.exceptions import ConflictError, NotFoundError, ValidationError
from okr_api.models import db
from okr_api.models.audit import write_audit
from okr_api.models.auth import RoleAssignment, Team, User, Workspace
from okr_api.services.roles import (
    LEGACY_ROLE_NAMES,
    ROLE_SCOPE,
    Role,
    ScopeType,
    normalize_role,
    sort_by_priority,
)

logger = logging.getLogger(__name__)

CACHE_TTL = 300  # 5 minutes

# Cache key: (user_id, tenant_id, workspace_id, team_id)
_role_cache: dict[tuple[int, int, int | None, int | None], tuple[float, frozenset[str]]] = {}
_cache_lock = threading.Lock()


def _ttl() -> int:
    if has_app_context():
        return current_app.config.get("ROLE_CACHE_TTL", CACHE_TTL)
    return CACHE_TTL


def _get_cached(key) -> Optional[frozenset[str]]:
    with _cache_lock:
        entry = _role_cache.get(key)
        if entry is None:
            return None
        cached_at, roles = entry
        if time.time() - cached_at > _ttl():
            del _role_cache[key]
            return None
        return roles


def _set_cached(key, roles: frozenset[str]) -> None:
    with _cache_lock:
        _role_cache[key] = (time.time(), roles)


def invalidate_cache(user_id: int) -> None:
    with _cache_lock:
        keys = [k for k in _role_cache if k[0] == user_id]
        for k in keys:
            _role_cache.pop(k, None)


def invalidate_all_cache() -> None:
    with _cache_lock:
        _role_cache.clear()


# ═══════════════════════════════════════════════════════════════
# Lookup
# ═══════════════════════════════════════════════════════════════

def get_effective_roles(
    user_id: int,
    tenant_id: int,
    workspace_id: int | None = None,
    team_id: int | None = None,
) -> frozenset[str]:
    """Return the current role names the user holds at the given scope."""
    if user_id is None or tenant_id is None:
        return frozenset()

    if team_id is not None and workspace_id is None:
        team = db.session.get(Team, team_id)
        if team is not None and team.tenant_id == tenant_id:
            workspace_id = team.workspace_id

    key = (user_id, tenant_id, workspace_id, team_id)
    cached = _get_cached(key)
    if cached is not None:
        return cached

    scope_filters = [
        and_(RoleAssignment.scope_type == ScopeType.TENANT.value,
             RoleAssignment.scope_id == tenant_id),
    ]
    if workspace_id is not None:
        scope_filters.append(and_(RoleAssignment.scope_type == ScopeType.WORKSPACE.value,
                                  RoleAssignment.scope_id == workspace_id))
    if team_id is not None:
        scope_filters.append(and_(RoleAssignment.scope_type == ScopeType.TEAM.value,
                                  RoleAssignment.scope_id == team_id))

    rows = (
        db.session.query(RoleAssignment.role, RoleAssignment.scope_type)
        .filter(
            RoleAssignment.user_id == user_id,
            RoleAssignment.tenant_id == tenant_id,
            or_(*scope_filters),
        )
        .all()
    )
    roles = set()
    for name, scope_type in rows:
        normalized = normalize_role(name, scope_type)
        if normalized is None:
            logger.warning("Ignoring unknown role %r at scope %s for user %s", name, scope_type, user_id)
            continue
        roles.add(normalized)

    result = frozenset(roles)
    _set_cached(key, result)
    return result


def get_effective_roles_sorted(
    user_id: int,
    tenant_id: int,
    workspace_id: int | None = None,
    team_id: int | None = None,
) -> list[str]:
    """Same as get_effective_roles, ordered by priority (highest first)."""
    return sort_by_priority(get_effective_roles(user_id, tenant_id, workspace_id, team_id))


def is_tenant_member(user_id: int, tenant_id: int) -> bool:
    """True if the user holds any assignment anywhere inside the tenant."""
    if user_id is None or tenant_id is None:
        return False
    return (
        db.session.query(RoleAssignment.id)
        .filter_by(user_id=user_id, tenant_id=tenant_id)
        .first()
    ) is not None


def list_assignments(tenant_id: int, user_id: int | None = None) -> list[RoleAssignment]:
    q = RoleAssignment.query_for_tenant(tenant_id)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    return q.order_by(RoleAssignment.user_id, RoleAssignment.id).all()


# ═══════════════════════════════════════════════════════════════
# Mutation
# ═══════════════════════════════════════════════════════════════

def _validate_scope_target(tenant_id: int, scope: ScopeType, scope_id: int) -> None:
    if scope is ScopeType.TENANT:
        if scope_id != tenant_id:
            raise ValidationError(
                "TENANT scope_id must be the tenant id",
                details={"scope_id": "must equal tenant id"},
            )
        return
    model = Workspace if scope is ScopeType.WORKSPACE else Team
    target = db.session.get(model, scope_id)
    if target is None or target.tenant_id != tenant_id:
        raise NotFoundError(resource=model.__name__, resource_id=scope_id, tenant_id=tenant_id)


def assign_role(
    *,
    tenant_id: int,
    user_id: int,
    role: str,
    scope_type: str,
    scope_id: int,
    actor_user_id: int | None = None,
) -> RoleAssignment:
    """Grant ``role`` to ``user_id`` at (scope_type, scope_id). Commits."""
    if role in LEGACY_ROLE_NAMES and role not in Role.__members__:
        raise ValidationError(
            f"Legacy role '{role}' can no longer be assigned",
            details={"role": "legacy"},
        )
    try:
        role_enum = Role(role)
    except ValueError:
        raise ValidationError(f"Unknown role '{role}'", details={"role": "unknown"}) from None
    try:
        scope = ScopeType(scope_type)
    except ValueError:
        raise ValidationError(
            f"Unknown scope type '{scope_type}'", details={"scope_type": "unknown"},
        ) from None
    if ROLE_SCOPE[role_enum] is not scope:
        raise ValidationError(
            f"Role {role} must be assigned at {ROLE_SCOPE[role_enum].value} scope",
            details={"scope_type": f"expected {ROLE_SCOPE[role_enum].value}"},
        )

    user = db.session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise NotFoundError(resource="User", resource_id=user_id, tenant_id=tenant_id)
    _validate_scope_target(tenant_id, scope, scope_id)

    existing = RoleAssignment.query.filter_by(
        user_id=user_id, role=role, scope_type=scope.value, scope_id=scope_id,
    ).first()
    if existing is not None:
        raise ConflictError("RoleAssignment", "role", f"{role}@{scope.value}:{scope_id}")

    ra = RoleAssignment(
        tenant_id=tenant_id,
        user_id=user_id,
        role=role,
        scope_type=scope.value,
        scope_id=scope_id,
        created_by=actor_user_id,
    )
    db.session.add(ra)
    db.session.flush()
    write_audit(
        action="role_assignment.assign",
        target_type="role_assignment",
        target_id=ra.id,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        metadata={"user_id": user_id, "role": role, "scope_type": scope.value, "scope_id": scope_id},
    )
    db.session.commit()
    invalidate_cache(user_id)
    logger.info("Assigned %s@%s:%s to user %s", role, scope.value, scope_id, user_id)
    return ra


def revoke_role(*, tenant_id: int, assignment_id: int, actor_user_id: int | None = None) -> None:
    """Remove a role assignment. Commits."""
    ra = RoleAssignment.query.filter_by(id=assignment_id, tenant_id=tenant_id).first()
    if ra is None:
        raise NotFoundError(resource="RoleAssignment", resource_id=assignment_id, tenant_id=tenant_id)
    snapshot = ra.to_dict()
    user_id = ra.user_id
    db.session.delete(ra)
    write_audit(
        action="role_assignment.revoke",
        target_type="role_assignment",
        target_id=assignment_id,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        metadata={"user_id": user_id, "role": snapshot["role"],
                  "scope_type": snapshot["scope_type"], "scope_id": snapshot["scope_id"]},
    )
    db.session.commit()
    invalidate_cache(user_id)
    logger.info("Revoked assignment %s from user %s", assignment_id, user_id)
