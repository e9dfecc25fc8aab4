"""
Access context — the immutable inputs of every authorisation decision.

``Principal`` describes who is acting, ``ResourceContext`` describes what
they are acting on. Both are frozen dataclasses: the evaluator and the
visibility classifier are pure functions over them, so identical inputs
always produce identical decisions.

The ``build_*`` helpers at the bottom do the I/O (role lookups, manager
chain walk, grants) and are the only DB-touching part of this module.

Usage:
    principal = build_principal(ctx, user, workspace_id=obj.workspace_id, team_id=obj.team_id)
    resource = resource_for_objective(obj)
    decision = can_perform(principal, Action.EDIT, resource)
"""

from dataclasses import dataclass, field

from okr_api.models import db
from okr_api.models.auth import Tenant, User

CONTENT_KINDS = frozenset({"objective", "key_result", "initiative"})

# Guard against cycles in manager_id data.
MAX_MANAGER_DEPTH = 25


@dataclass(frozen=True)
class Principal:
    """The acting user as seen at one resource's scope."""

    user_id: int | None
    is_superuser: bool = False
    acting_tenant_id: int | None = None
    tenant_resolved: bool = True
    roles: frozenset[str] = field(default_factory=frozenset)
    tenant_member: bool = False


@dataclass(frozen=True)
class ResourceContext:
    """Snapshot of a resource (plus its tenant's policy) at decision time."""

    kind: str
    tenant_id: int | None
    id: int | None = None
    owner_id: int | None = None
    workspace_id: int | None = None
    team_id: int | None = None
    visibility_level: str = "PUBLIC_TENANT"
    is_published: bool = False
    cycle_status: str | None = None
    grant_user_ids: frozenset[int] = field(default_factory=frozenset)
    owner_manager_chain: frozenset[int] = field(default_factory=frozenset)
    exec_whitelist: frozenset[int] = field(default_factory=frozenset)
    allow_tenant_admin_exec_visibility: bool = False
    # Linked objectives of a Key Result; at least one must be visible.
    parents: tuple["ResourceContext", ...] = ()

    @property
    def is_content(self) -> bool:
        return self.kind in CONTENT_KINDS


# ═══════════════════════════════════════════════════════════════
# Builders (DB access)
# ═══════════════════════════════════════════════════════════════

def build_principal(ctx, user: User | None, *, workspace_id=None, team_id=None) -> Principal:
    """Resolve the acting user's effective roles at a resource's scope."""
    from okr_api.services.role_service import get_effective_roles, is_tenant_member

    if user is None:
        return Principal(user_id=None, tenant_resolved=ctx.is_resolved)
    if user.is_superuser:
        return Principal(
            user_id=user.id,
            is_superuser=True,
            acting_tenant_id=None,
            tenant_resolved=ctx.is_resolved,
        )
    tenant_id = ctx.tenant_id
    return Principal(
        user_id=user.id,
        acting_tenant_id=tenant_id,
        tenant_resolved=ctx.is_resolved and tenant_id is not None,
        roles=get_effective_roles(user.id, tenant_id, workspace_id, team_id),
        tenant_member=is_tenant_member(user.id, tenant_id),
    )


def _manager_chain(owner_id: int | None) -> frozenset[int]:
    chain: set[int] = set()
    current = db.session.get(User, owner_id) if owner_id else None
    depth = 0
    while current is not None and current.manager_id and depth < MAX_MANAGER_DEPTH:
        if current.manager_id in chain:
            break
        chain.add(current.manager_id)
        current = db.session.get(User, current.manager_id)
        depth += 1
    return frozenset(chain)


def _tenant_policy(tenant_id: int) -> dict:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        return {}
    return {
        "exec_whitelist": frozenset(tenant.whitelist_ids()),
        "allow_tenant_admin_exec_visibility": bool(tenant.allow_tenant_admin_exec_visibility),
    }


def resource_for_objective(obj, *, kind: str = "objective", owner_id=None) -> ResourceContext:
    return ResourceContext(
        kind=kind,
        tenant_id=obj.tenant_id,
        id=obj.id,
        owner_id=owner_id if owner_id is not None else obj.owner_id,
        workspace_id=obj.workspace_id,
        team_id=obj.team_id,
        visibility_level=obj.visibility_level,
        is_published=bool(obj.is_published),
        cycle_status=obj.cycle.status if obj.cycle is not None else None,
        grant_user_ids=frozenset(g.user_id for g in obj.grants),
        owner_manager_chain=_manager_chain(obj.owner_id),
        **_tenant_policy(obj.tenant_id),
    )


def resource_for_key_result(kr, *, kind: str = "key_result", owner_id=None) -> ResourceContext:
    """A Key Result seen through its linked objectives.

    It is published when it or any linked objective is published, and
    grants on those objectives extend to it.
    """
    cycle = kr.effective_cycle
    parents = tuple(
        resource_for_objective(link.objective)
        for link in kr.objective_links
        if link.objective is not None
    )
    grants = frozenset().union(*(p.grant_user_ids for p in parents))
    return ResourceContext(
        kind=kind,
        tenant_id=kr.tenant_id,
        id=kr.id,
        owner_id=owner_id if owner_id is not None else kr.owner_id,
        workspace_id=kr.workspace_id,
        team_id=kr.team_id,
        visibility_level=kr.visibility_level,
        is_published=bool(kr.is_published) or any(p.is_published for p in parents),
        cycle_status=cycle.status if cycle is not None else None,
        grant_user_ids=grants,
        owner_manager_chain=_manager_chain(kr.owner_id),
        parents=parents,
        **_tenant_policy(kr.tenant_id),
    )


def resource_for_scope(tenant_id: int, *, kind: str = "scope", workspace_id=None, team_id=None) -> ResourceContext:
    """Non-content target: a tenant, or the workspace/team new content lands in."""
    return ResourceContext(
        kind=kind,
        tenant_id=tenant_id,
        workspace_id=workspace_id,
        team_id=team_id,
    )
