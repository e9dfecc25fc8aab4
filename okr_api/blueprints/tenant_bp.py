"""
Tenant blueprints — current tenant, policy settings, audit trail, and the
exec-only whitelist.

Endpoints (tenant_bp):
    GET   /api/v1/tenant/current      resolved from token / X-Tenant-Id / subdomain; no auth
    PATCH /api/v1/tenant/settings     {allow_tenant_admin_exec_visibility}
    GET   /api/v1/tenant/audit        ?action, ?target_type, ?target_id, ?limit, ?offset

Endpoints (exec_whitelist_bp — rate limited per tenant):
    GET    /api/v1/tenant/exec-whitelist
    POST   /api/v1/tenant/exec-whitelist              {user_id}
    DELETE /api/v1/tenant/exec-whitelist/<user_id>
"""

from flask import Blueprint, g, jsonify, request

from okr_api.blueprints import paginate_query, register_error_handlers
from okr_api.middleware.permission_required import require_auth
from okr_api.middleware.tenant_context import current_tenant_context
from okr_api.services import tenant_service as svc
from okr_api.utils.errors import E, api_error

tenant_bp = Blueprint("tenant", __name__, url_prefix="/api/v1/tenant")
exec_whitelist_bp = Blueprint("exec_whitelist", __name__, url_prefix="/api/v1/tenant/exec-whitelist")
register_error_handlers(tenant_bp)
register_error_handlers(exec_whitelist_bp)


@tenant_bp.route("/current", methods=["GET"])
def current_tenant():
    ctx = current_tenant_context()
    tenant = getattr(g, "tenant", None)
    if tenant is None:
        return api_error(E.NOT_FOUND, "No tenant could be resolved for this request")
    return jsonify({"tenant": tenant.to_dict(), "source": ctx.source}), 200


@tenant_bp.route("/settings", methods=["PATCH"])
@require_auth
def update_settings():
    data = request.get_json(silent=True) or {}
    tenant = svc.update_settings(g.tenant_context, g.current_user, data)
    return jsonify(tenant.to_dict()), 200


@tenant_bp.route("/audit", methods=["GET"])
@require_auth
def list_audit():
    q = svc.audit_query(
        g.tenant_context, g.current_user,
        action=request.args.get("action"),
        target_type=request.args.get("target_type"),
        target_id=request.args.get("target_id"),
    )
    items, total = paginate_query(q)
    return jsonify({"items": [a.to_dict() for a in items], "total": total}), 200


# ═══════════════════════════════════════════════════════════════
# Exec-only whitelist
# ═══════════════════════════════════════════════════════════════

@exec_whitelist_bp.route("", methods=["GET"])
@require_auth
def get_whitelist():
    return jsonify({"user_ids": svc.get_exec_whitelist(g.tenant_context, g.current_user)}), 200


@exec_whitelist_bp.route("", methods=["POST"])
@require_auth
def add_to_whitelist():
    data = request.get_json(silent=True) or {}
    ids = svc.add_to_exec_whitelist(g.tenant_context, g.current_user, data)
    return jsonify({"user_ids": ids}), 200


@exec_whitelist_bp.route("/<int:user_id>", methods=["DELETE"])
@require_auth
def remove_from_whitelist(user_id):
    ids = svc.remove_from_exec_whitelist(g.tenant_context, g.current_user, user_id)
    return jsonify({"user_ids": ids}), 200
