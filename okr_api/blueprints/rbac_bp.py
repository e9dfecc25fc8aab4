"""
RBAC blueprint — role assignments, the explain surface and per-user flags.

Endpoints:
    GET    /api/v1/rbac/me/roles                       effective roles (?workspace_id, ?team_id)
    GET    /api/v1/rbac/assignments                    tenant admins only (?user_id)
    POST   /api/v1/rbac/assignments                    {user_id, role, scope_type, scope_id}
    DELETE /api/v1/rbac/assignments/<id>
    GET    /api/v1/rbac/explain?action=&objective_id=|key_result_id=
    GET    /api/v1/rbac/me/features
    PUT    /api/v1/rbac/users/<id>/features/rbac-inspector   {enabled}
"""

import logging

from flask import Blueprint, g, jsonify, request

from okr_api.blueprints import register_error_handlers
from okr_api.core.exceptions import ValidationError
from okr_api.middleware.permission_required import require_auth
from okr_api.services import feature_flag_service, okr_service, role_service
from okr_api.services.access_context import resource_for_key_result, resource_for_objective
from okr_api.services.authorisation import Action
from okr_api.services.explain import explain_if_enabled
from okr_api.services.helpers.guards import authorize_tenant_admin, check_requested_tenant, decide
from okr_api.services.roles import SUPERUSER

logger = logging.getLogger(__name__)

rbac_bp = Blueprint("rbac", __name__, url_prefix="/api/v1/rbac")
register_error_handlers(rbac_bp)


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════

@rbac_bp.route("/me/roles", methods=["GET"])
@require_auth
def my_roles():
    ctx, user = g.tenant_context, g.current_user
    if user.is_superuser:
        return jsonify({"user_id": user.id, "tenant_id": None, "roles": [SUPERUSER]}), 200
    roles = role_service.get_effective_roles_sorted(
        user.id,
        ctx.tenant_id,
        request.args.get("workspace_id", type=int),
        request.args.get("team_id", type=int),
    )
    return jsonify({"user_id": user.id, "tenant_id": ctx.tenant_id, "roles": roles}), 200


@rbac_bp.route("/assignments", methods=["GET"])
@require_auth
def list_assignments():
    ctx, user = g.tenant_context, g.current_user
    authorize_tenant_admin(ctx, user, Action.MANAGE_ROLES)
    rows = role_service.list_assignments(ctx.tenant_id, request.args.get("user_id", type=int))
    return jsonify([ra.to_dict() for ra in rows]), 200


@rbac_bp.route("/assignments", methods=["POST"])
@require_auth
def create_assignment():
    ctx, user = g.tenant_context, g.current_user
    data = request.get_json(silent=True) or {}
    check_requested_tenant(ctx, user, Action.MANAGE_ROLES, data)
    authorize_tenant_admin(ctx, user, Action.MANAGE_ROLES)

    missing = [f for f in ("user_id", "role", "scope_type", "scope_id") if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={f: "required" for f in missing},
        )
    ra = role_service.assign_role(
        tenant_id=ctx.tenant_id,
        user_id=data["user_id"],
        role=data["role"],
        scope_type=data["scope_type"],
        scope_id=data["scope_id"],
        actor_user_id=user.id,
    )
    return jsonify(ra.to_dict()), 201


@rbac_bp.route("/assignments/<int:assignment_id>", methods=["DELETE"])
@require_auth
def delete_assignment(assignment_id):
    ctx, user = g.tenant_context, g.current_user
    authorize_tenant_admin(ctx, user, Action.MANAGE_ROLES)
    role_service.revoke_role(tenant_id=ctx.tenant_id, assignment_id=assignment_id, actor_user_id=user.id)
    return jsonify({"message": "Assignment revoked"}), 200


# ═══════════════════════════════════════════════════════════════
# Explain
# ═══════════════════════════════════════════════════════════════

@rbac_bp.route("/explain", methods=["GET"])
@require_auth
def explain_action():
    """Allowed/denied for one action on one visible resource.

    The ``explain`` block is only present when the caller's rbacInspector
    flag is on.
    """
    ctx, user = g.tenant_context, g.current_user
    try:
        action = Action(request.args.get("action", ""))
    except ValueError:
        raise ValidationError(
            "Unknown action", details={"action": f"one of {', '.join(a.value for a in Action)}"},
        ) from None

    objective_id = request.args.get("objective_id", type=int)
    key_result_id = request.args.get("key_result_id", type=int)
    if objective_id is not None:
        resource = resource_for_objective(okr_service.get_objective(ctx, user, objective_id))
    elif key_result_id is not None:
        resource = resource_for_key_result(okr_service.get_key_result(ctx, user, key_result_id))
    else:
        raise ValidationError(
            "objective_id or key_result_id is required",
            details={"objective_id": "required"},
        )

    decision = decide(ctx, user, action, resource)
    body = {
        "allowed": decision.allowed,
        "action": action.value,
        "lock": decision.lock.to_dict(),
    }
    explanation = explain_if_enabled(user, action, resource, decision)
    if explanation is not None:
        body["reason"] = decision.primary.value if decision.primary else None
        body["explain"] = explanation
    return jsonify(body), 200


# ═══════════════════════════════════════════════════════════════
# Feature flags
# ═══════════════════════════════════════════════════════════════

@rbac_bp.route("/me/features", methods=["GET"])
@require_auth
def my_features():
    return jsonify(feature_flag_service.get_user_features(g.current_user)), 200


@rbac_bp.route("/users/<int:user_id>/features/rbac-inspector", methods=["PUT"])
@require_auth
def set_rbac_inspector(user_id):
    ctx, user = g.tenant_context, g.current_user
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("enabled"), bool):
        raise ValidationError("enabled must be a boolean", details={"enabled": "required"})
    authorize_tenant_admin(ctx, user, Action.MANAGE_SETTINGS)
    features = feature_flag_service.set_rbac_inspector(
        tenant_id=ctx.tenant_id,
        user_id=user_id,
        enabled=data["enabled"],
        actor_user_id=user.id,
    )
    return jsonify(features), 200
