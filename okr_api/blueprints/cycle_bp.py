"""
Cycle blueprint — OKR periods.

Endpoints:
    GET  /api/v1/cycles
    POST /api/v1/cycles
    GET  /api/v1/cycles/<id>
    PATCH /api/v1/cycles/<id>             {name?, start_date?, end_date?}
    POST /api/v1/cycles/<id>/transition   {action: activate | lock | archive}
"""

from flask import Blueprint, g, jsonify, request

from okr_api.blueprints import register_error_handlers
from okr_api.middleware.permission_required import require_auth
from okr_api.services import cycle_service as svc

cycle_bp = Blueprint("cycle", __name__, url_prefix="/api/v1/cycles")
register_error_handlers(cycle_bp)


@cycle_bp.route("", methods=["GET"])
@require_auth(allow_platform_scope=False)
def list_cycles():
    return jsonify([c.to_dict() for c in svc.list_cycles(g.tenant_context.tenant_id)]), 200


@cycle_bp.route("", methods=["POST"])
@require_auth
def create_cycle():
    """Body: {name, start_date, end_date} (ISO dates)"""
    data = request.get_json(silent=True) or {}
    cycle = svc.create_cycle(g.tenant_context, g.current_user, data)
    return jsonify(cycle.to_dict()), 201


@cycle_bp.route("/<int:cycle_id>", methods=["GET"])
@require_auth(allow_platform_scope=False)
def get_cycle(cycle_id):
    return jsonify(svc.get_cycle(g.tenant_context.tenant_id, cycle_id).to_dict()), 200


@cycle_bp.route("/<int:cycle_id>", methods=["PATCH"])
@require_auth
def update_cycle(cycle_id):
    """Body: any of {name, start_date, end_date}"""
    data = request.get_json(silent=True) or {}
    cycle = svc.update_cycle(g.tenant_context, g.current_user, cycle_id, data)
    return jsonify(cycle.to_dict()), 200


@cycle_bp.route("/<int:cycle_id>/transition", methods=["POST"])
@require_auth
def transition_cycle(cycle_id):
    data = request.get_json(silent=True) or {}
    cycle = svc.transition_cycle(g.tenant_context, g.current_user, cycle_id, data.get("action") or "")
    return jsonify(cycle.to_dict()), 200
