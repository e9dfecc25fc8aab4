"""
Service-layer guards around the authorisation evaluator.

Every service that mutates tenant data calls ``authorize`` before touching
the session; content reads call ``ensure_visible`` so invisible content is
reported exactly like missing content (404).

Usage:
    from okr_api.services.helpers.guards import authorize, ensure_visible

    ensure_visible(ctx, user, resource, "Objective")
    authorize(ctx, user, Action.EDIT, resource)
"""

from okr_api.core.exceptions import AuthorizationDenied, NotFoundError, ValidationError
from okr_api.services.access_context import ResourceContext, build_principal, resource_for_scope
from okr_api.services.authorisation import Action, Decision, can_perform, log_denial
from okr_api.services.visibility import can_view


def decide(ctx, user, action, resource: ResourceContext) -> Decision:
    """Evaluate without raising. Used by the explain endpoint."""
    principal = build_principal(ctx, user, workspace_id=resource.workspace_id, team_id=resource.team_id)
    return can_perform(principal, action, resource)


def authorize(ctx, user, action, resource: ResourceContext) -> Decision:
    """Evaluate and raise AuthorizationDenied on denial."""
    principal = build_principal(ctx, user, workspace_id=resource.workspace_id, team_id=resource.team_id)
    decision = can_perform(principal, action, resource)
    if not decision.allowed:
        log_denial(decision, principal, resource)
        raise AuthorizationDenied(decision, resource=resource)
    return decision


def ensure_visible(ctx, user, resource: ResourceContext, label: str) -> None:
    principal = build_principal(ctx, user, workspace_id=resource.workspace_id, team_id=resource.team_id)
    if not can_view(principal, resource):
        raise NotFoundError(resource=label, resource_id=resource.id)


def authorize_tenant_admin(ctx, user, action) -> Decision:
    """Gate an admin action (whitelist, roles, cycles, settings, audit) on the acting tenant."""
    return authorize(ctx, user, action, resource_for_scope(ctx.tenant_id, kind="tenant"))


def check_requested_tenant(ctx, user, action: Action, data: dict) -> None:
    """Deny a mutation whose payload names a tenant other than the acting one."""
    requested = data.get("tenant_id")
    if requested is None or requested == "":
        return
    try:
        requested = int(requested)
    except (TypeError, ValueError):
        raise ValidationError("tenant_id must be an integer", details={"tenant_id": "invalid"}) from None
    if requested != ctx.tenant_id:
        authorize(ctx, user, action, resource_for_scope(requested))
