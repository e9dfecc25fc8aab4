"""
Visibility Classifier — who may SEE an Objective / Key Result.

Independent of who may edit it. Two tiers of levels:

    AssignableVisibility   PUBLIC_TENANT, PRIVATE
                           the only values create/update may write
    VisibilityLevel        the above plus the legacy read-only values
                           WORKSPACE_ONLY, TEAM_ONLY, MANAGER_CHAIN, EXEC_ONLY
                           still found on historical rows

Write paths accept ``AssignableVisibility`` only, obtained through
``parse_assignable_visibility()``; a legacy or unknown value there is a
ValidationError, never a permission denial.

A Key Result is additionally hidden unless at least one of its linked
objectives is visible (``ResourceContext.parents``).

Read rules (owner always sees their own resource):
    PUBLIC_TENANT   any user holding a role anywhere in the tenant
    PRIVATE         explicit grant, TENANT_OWNER / TENANT_ADMIN
    EXEC_ONLY       published: TENANT_OWNER, TENANT_ADMIN with the tenant's
                    allow_tenant_admin_exec_visibility flag, or the tenant's
                    exec_only_whitelist; unpublished: as PRIVATE
    WORKSPACE_ONLY  tenant admins, or a workspace/team role at the resource's workspace
    TEAM_ONLY       tenant admins, the workspace lead, or a team role at the resource's team
    MANAGER_CHAIN   tenant admins, or anyone above the owner in the manager chain
"""

from enum import Enum

from okr_api.core.exceptions import ValidationError
from okr_api.services.access_context import Principal, ResourceContext
from okr_api.services.roles import (
    TEAM_ROLES,
    TENANT_ADMIN_ROLES,
    WORKSPACE_ROLES,
    Role,
)


class VisibilityLevel(str, Enum):
    PUBLIC_TENANT = "PUBLIC_TENANT"
    PRIVATE = "PRIVATE"
    # Legacy (read-only)
    WORKSPACE_ONLY = "WORKSPACE_ONLY"
    TEAM_ONLY = "TEAM_ONLY"
    MANAGER_CHAIN = "MANAGER_CHAIN"
    EXEC_ONLY = "EXEC_ONLY"


class AssignableVisibility(str, Enum):
    PUBLIC_TENANT = "PUBLIC_TENANT"
    PRIVATE = "PRIVATE"


LEGACY_LEVELS = frozenset({
    VisibilityLevel.WORKSPACE_ONLY.value,
    VisibilityLevel.TEAM_ONLY.value,
    VisibilityLevel.MANAGER_CHAIN.value,
    VisibilityLevel.EXEC_ONLY.value,
})


def parse_assignable_visibility(value) -> AssignableVisibility:
    """Validate a visibility value arriving on a create/update request."""
    if isinstance(value, AssignableVisibility):
        return value
    if value in LEGACY_LEVELS:
        raise ValidationError(
            f"Legacy visibility level '{value}' is no longer supported",
            details={"visibility_level": "use PUBLIC_TENANT or PRIVATE"},
        )
    try:
        return AssignableVisibility(value)
    except ValueError:
        raise ValidationError(
            f"Unknown visibility level '{value}'",
            details={"visibility_level": "use PUBLIC_TENANT or PRIVATE"},
        ) from None


def _can_view_private(principal: Principal, resource: ResourceContext) -> bool:
    return (
        principal.user_id in resource.grant_user_ids
        or bool(principal.roles & TENANT_ADMIN_ROLES)
    )


def _can_view_exec_only(principal: Principal, resource: ResourceContext) -> bool:
    if not resource.is_published:
        return _can_view_private(principal, resource)
    if Role.TENANT_OWNER.value in principal.roles:
        return True
    if Role.TENANT_ADMIN.value in principal.roles and resource.allow_tenant_admin_exec_visibility:
        return True
    return principal.user_id in resource.exec_whitelist


def can_view(principal: Principal, resource: ResourceContext) -> bool:
    """True if ``principal`` may see ``resource``. Pure."""
    if principal.is_superuser:
        return True
    if principal.user_id is None:
        return False
    if resource.owner_id is not None and resource.owner_id == principal.user_id:
        return True
    if resource.parents and not any(can_view(principal, parent) for parent in resource.parents):
        return False

    level = resource.visibility_level
    if level == VisibilityLevel.PUBLIC_TENANT.value:
        return principal.tenant_member or bool(principal.roles)
    if level == VisibilityLevel.PRIVATE.value:
        return _can_view_private(principal, resource)
    if level == VisibilityLevel.EXEC_ONLY.value:
        return _can_view_exec_only(principal, resource)

    if principal.roles & TENANT_ADMIN_ROLES:
        return True
    if level == VisibilityLevel.WORKSPACE_ONLY.value:
        return bool(principal.roles & (WORKSPACE_ROLES | TEAM_ROLES))
    if level == VisibilityLevel.TEAM_ONLY.value:
        return bool(principal.roles & (TEAM_ROLES | {Role.WORKSPACE_LEAD.value}))
    if level == VisibilityLevel.MANAGER_CHAIN.value:
        return principal.user_id in resource.owner_manager_chain
    # Unknown stored value: fail closed.
    return False


def is_exec_only(resource: ResourceContext) -> bool:
    return resource.visibility_level == VisibilityLevel.EXEC_ONLY.value
