"""
Role catalogue — names, scopes, priorities and legacy aliases.

Pure data, no DB access. Shared by the role store (role_service.py) and the
evaluator (authorisation.py).

Scope hierarchy:
    TENANT  >  WORKSPACE  >  TEAM

A role is only meaningful at the scope type it belongs to
(``ROLE_SCOPE``). Legacy role names still present on historical rows are
translated on read (``normalize_role``) and can never be newly assigned.
"""

from enum import Enum


class ScopeType(str, Enum):
    TENANT = "TENANT"
    WORKSPACE = "WORKSPACE"
    TEAM = "TEAM"


class Role(str, Enum):
    TENANT_OWNER = "TENANT_OWNER"
    TENANT_ADMIN = "TENANT_ADMIN"
    TENANT_VIEWER = "TENANT_VIEWER"
    CONTRIBUTOR = "CONTRIBUTOR"
    WORKSPACE_LEAD = "WORKSPACE_LEAD"
    WORKSPACE_ADMIN = "WORKSPACE_ADMIN"
    WORKSPACE_MEMBER = "WORKSPACE_MEMBER"
    TEAM_LEAD = "TEAM_LEAD"
    TEAM_CONTRIBUTOR = "TEAM_CONTRIBUTOR"
    TEAM_VIEWER = "TEAM_VIEWER"


ROLE_SCOPE: dict[Role, ScopeType] = {
    Role.TENANT_OWNER: ScopeType.TENANT,
    Role.TENANT_ADMIN: ScopeType.TENANT,
    Role.TENANT_VIEWER: ScopeType.TENANT,
    Role.CONTRIBUTOR: ScopeType.TENANT,
    Role.WORKSPACE_LEAD: ScopeType.WORKSPACE,
    Role.WORKSPACE_ADMIN: ScopeType.WORKSPACE,
    Role.WORKSPACE_MEMBER: ScopeType.WORKSPACE,
    Role.TEAM_LEAD: ScopeType.TEAM,
    Role.TEAM_CONTRIBUTOR: ScopeType.TEAM,
    Role.TEAM_VIEWER: ScopeType.TEAM,
}

# Higher wins when presenting roles; SUPERUSER is a user flag, not an assignment.
SUPERUSER = "SUPERUSER"
ROLE_PRIORITY: dict[str, int] = {
    SUPERUSER: 100,
    Role.TENANT_OWNER.value: 90,
    Role.TENANT_ADMIN.value: 80,
    Role.WORKSPACE_LEAD.value: 70,
    Role.WORKSPACE_ADMIN.value: 60,
    Role.TEAM_LEAD.value: 50,
    Role.WORKSPACE_MEMBER.value: 40,
    Role.CONTRIBUTOR.value: 35,
    Role.TEAM_CONTRIBUTOR.value: 30,
    Role.TEAM_VIEWER.value: 20,
    Role.TENANT_VIEWER.value: 10,
}

# ── Legacy aliases (pre-RBAC membership tables) ──────────────────────────
# MEMBER / VIEWER depend on the scope type they were stored under.
LEGACY_ROLE_MAP: dict[tuple[str, ScopeType], Role] = {
    ("ORG_ADMIN", ScopeType.TENANT): Role.TENANT_ADMIN,
    ("MEMBER", ScopeType.TENANT): Role.TENANT_VIEWER,
    ("VIEWER", ScopeType.TENANT): Role.TENANT_VIEWER,
    ("WORKSPACE_OWNER", ScopeType.WORKSPACE): Role.WORKSPACE_LEAD,
    ("MEMBER", ScopeType.WORKSPACE): Role.WORKSPACE_MEMBER,
    ("VIEWER", ScopeType.WORKSPACE): Role.WORKSPACE_MEMBER,
    ("MEMBER", ScopeType.TEAM): Role.TEAM_CONTRIBUTOR,
    ("VIEWER", ScopeType.TEAM): Role.TEAM_VIEWER,
}
LEGACY_ROLE_NAMES = frozenset(name for name, _ in LEGACY_ROLE_MAP)

# ── Role groups used by the evaluator ────────────────────────────────────
TENANT_ADMIN_ROLES = frozenset({Role.TENANT_OWNER.value, Role.TENANT_ADMIN.value})
LEAD_ROLES = frozenset({Role.WORKSPACE_LEAD.value, Role.TEAM_LEAD.value})
VIEWER_ONLY_ROLES = frozenset({Role.TENANT_VIEWER.value, Role.TEAM_VIEWER.value})
CONTRIBUTOR_ROLES = frozenset({Role.CONTRIBUTOR.value, Role.TEAM_CONTRIBUTOR.value})
AUTHOR_ROLES = frozenset(r.value for r in Role) - VIEWER_ONLY_ROLES
WORKSPACE_ROLES = frozenset(r.value for r, s in ROLE_SCOPE.items() if s is ScopeType.WORKSPACE)
TEAM_ROLES = frozenset(r.value for r, s in ROLE_SCOPE.items() if s is ScopeType.TEAM)


def normalize_role(name: str, scope_type: str) -> str | None:
    """Map a stored role name to a current one. Unknown names yield None."""
    try:
        scope = ScopeType(scope_type)
    except ValueError:
        return None
    if name in Role.__members__:
        role = Role(name)
        return role.value if ROLE_SCOPE[role] is scope else None
    legacy = LEGACY_ROLE_MAP.get((name, scope))
    return legacy.value if legacy else None


def sort_by_priority(roles) -> list[str]:
    return sorted(set(roles), key=lambda r: (-ROLE_PRIORITY.get(r, 0), r))
