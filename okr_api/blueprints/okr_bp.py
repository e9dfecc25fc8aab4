"""
OKR blueprint — Objectives, Key Results, Initiatives, Check-ins.

Endpoint groups:
  Objectives     GET/POST   /api/v1/objectives
                 GET/PATCH/DELETE /api/v1/objectives/<id>
                 POST       /api/v1/objectives/<id>/publish | /unpublish
                 POST       /api/v1/objectives/<id>/grants
                 DELETE     /api/v1/objectives/<id>/grants/<user_id>
  Key Results    POST       /api/v1/objectives/<id>/key-results
                 PUT        /api/v1/objectives/<id>/key-results/<kr_id>
                 GET/PATCH/DELETE /api/v1/key-results/<id>
                 POST       /api/v1/key-results/<id>/publish | /unpublish
                 GET/POST   /api/v1/key-results/<id>/check-ins
  Initiatives    POST       /api/v1/key-results/<id>/initiatives
                 POST       /api/v1/objectives/<id>/initiatives
                 GET/PATCH/DELETE /api/v1/initiatives/<id>

Routes stay thin: they pass the request's tenant context and user to
okr_service, which owns authorisation, validation and commits.
"""

import logging

from flask import Blueprint, g, jsonify, request

from okr_api.blueprints import paginate_list, register_error_handlers
from okr_api.core.exceptions import ValidationError
from okr_api.middleware.permission_required import require_auth
from okr_api.services import okr_service as svc

logger = logging.getLogger(__name__)

okr_bp = Blueprint("okr", __name__, url_prefix="/api/v1")
register_error_handlers(okr_bp)


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _ctx():
    return g.tenant_context, g.current_user


# ═══════════════════════════════════════════════════════════════
# Objectives
# ═══════════════════════════════════════════════════════════════

@okr_bp.route("/objectives", methods=["GET"])
@require_auth
def list_objectives():
    """List visible objectives.

    Query params: cycle_id, workspace_id, team_id, limit, offset;
    tenant_id (platform-scope reads only).
    """
    ctx, user = _ctx()
    items = svc.list_objectives(
        ctx, user,
        tenant_id=request.args.get("tenant_id", type=int),
        cycle_id=request.args.get("cycle_id", type=int),
        workspace_id=request.args.get("workspace_id", type=int),
        team_id=request.args.get("team_id", type=int),
    )
    page, total = paginate_list(items)
    return jsonify({"items": [o.to_dict() for o in page], "total": total}), 200


@okr_bp.route("/objectives", methods=["POST"])
@require_auth
def create_objective():
    ctx, user = _ctx()
    obj = svc.create_objective(ctx, user, _json())
    return jsonify(obj.to_dict()), 201


@okr_bp.route("/objectives/<int:objective_id>", methods=["GET"])
@require_auth
def get_objective(objective_id):
    ctx, user = _ctx()
    obj = svc.get_objective(ctx, user, objective_id)
    links = svc.visible_key_result_links(ctx, user, obj)
    return jsonify(obj.to_dict(key_result_links=links)), 200


@okr_bp.route("/objectives/<int:objective_id>", methods=["PATCH"])
@require_auth
def update_objective(objective_id):
    ctx, user = _ctx()
    obj = svc.update_objective(ctx, user, objective_id, _json())
    return jsonify(obj.to_dict()), 200


@okr_bp.route("/objectives/<int:objective_id>", methods=["DELETE"])
@require_auth
def delete_objective(objective_id):
    ctx, user = _ctx()
    svc.delete_objective(ctx, user, objective_id)
    return jsonify({"message": "Objective deleted"}), 200


@okr_bp.route("/objectives/<int:objective_id>/publish", methods=["POST"])
@require_auth
def publish_objective(objective_id):
    ctx, user = _ctx()
    return jsonify(svc.publish_objective(ctx, user, objective_id).to_dict()), 200


@okr_bp.route("/objectives/<int:objective_id>/unpublish", methods=["POST"])
@require_auth
def unpublish_objective(objective_id):
    ctx, user = _ctx()
    return jsonify(svc.unpublish_objective(ctx, user, objective_id).to_dict()), 200


@okr_bp.route("/objectives/<int:objective_id>/grants", methods=["POST"])
@require_auth
def grant_access(objective_id):
    """Body: {user_id}"""
    ctx, user = _ctx()
    grantee_id = _json().get("user_id")
    if not isinstance(grantee_id, int):
        raise ValidationError("user_id is required", details={"user_id": "required"})
    grant = svc.grant_access(ctx, user, objective_id, grantee_id)
    return jsonify(grant.to_dict()), 201


@okr_bp.route("/objectives/<int:objective_id>/grants/<int:user_id>", methods=["DELETE"])
@require_auth
def revoke_access(objective_id, user_id):
    ctx, user = _ctx()
    svc.revoke_access(ctx, user, objective_id, user_id)
    return jsonify({"message": "Access revoked"}), 200


# ═══════════════════════════════════════════════════════════════
# Key Results
# ═══════════════════════════════════════════════════════════════

@okr_bp.route("/objectives/<int:objective_id>/key-results", methods=["POST"])
@require_auth
def create_key_result(objective_id):
    """Create a KR and link it. Body: {title, weight?, start_value?, target_value?, …}"""
    ctx, user = _ctx()
    kr = svc.create_key_result(ctx, user, objective_id, _json())
    return jsonify(kr.to_dict()), 201


@okr_bp.route("/objectives/<int:objective_id>/key-results/<int:kr_id>", methods=["PUT"])
@require_auth
def link_key_result(objective_id, kr_id):
    """Link an existing KR or change its weight. Body: {weight}"""
    ctx, user = _ctx()
    data = _json()
    if "weight" not in data:
        raise ValidationError("weight is required", details={"weight": "required"})
    link = svc.link_key_result(ctx, user, objective_id, kr_id, data["weight"])
    return jsonify({
        "objective_id": link.objective_id,
        "key_result_id": link.key_result_id,
        "weight": link.weight,
        "objective_progress": round(link.objective.progress or 0.0, 2),
    }), 200


@okr_bp.route("/key-results/<int:kr_id>", methods=["GET"])
@require_auth
def get_key_result(kr_id):
    ctx, user = _ctx()
    return jsonify(svc.get_key_result(ctx, user, kr_id).to_dict()), 200


@okr_bp.route("/key-results/<int:kr_id>", methods=["PATCH"])
@require_auth
def update_key_result(kr_id):
    ctx, user = _ctx()
    return jsonify(svc.update_key_result(ctx, user, kr_id, _json()).to_dict()), 200


@okr_bp.route("/key-results/<int:kr_id>", methods=["DELETE"])
@require_auth
def delete_key_result(kr_id):
    ctx, user = _ctx()
    svc.delete_key_result(ctx, user, kr_id)
    return jsonify({"message": "Key result deleted"}), 200


@okr_bp.route("/key-results/<int:kr_id>/publish", methods=["POST"])
@require_auth
def publish_key_result(kr_id):
    ctx, user = _ctx()
    return jsonify(svc.publish_key_result(ctx, user, kr_id).to_dict()), 200


@okr_bp.route("/key-results/<int:kr_id>/unpublish", methods=["POST"])
@require_auth
def unpublish_key_result(kr_id):
    ctx, user = _ctx()
    return jsonify(svc.unpublish_key_result(ctx, user, kr_id).to_dict()), 200


@okr_bp.route("/key-results/<int:kr_id>/check-ins", methods=["GET"])
@require_auth
def list_check_ins(kr_id):
    ctx, user = _ctx()
    return jsonify([c.to_dict() for c in svc.list_check_ins(ctx, user, kr_id)]), 200


@okr_bp.route("/key-results/<int:kr_id>/check-ins", methods=["POST"])
@require_auth
def create_check_in(kr_id):
    """Body: {value, confidence?, note?}"""
    ctx, user = _ctx()
    entry = svc.check_in(ctx, user, kr_id, _json())
    return jsonify(entry.to_dict()), 201


# ═══════════════════════════════════════════════════════════════
# Initiatives
# ═══════════════════════════════════════════════════════════════

@okr_bp.route("/key-results/<int:kr_id>/initiatives", methods=["POST"])
@require_auth
def create_initiative(kr_id):
    ctx, user = _ctx()
    ini = svc.create_initiative(ctx, user, kr_id, _json())
    return jsonify(ini.to_dict()), 201


@okr_bp.route("/objectives/<int:objective_id>/initiatives", methods=["POST"])
@require_auth
def create_objective_initiative(objective_id):
    ctx, user = _ctx()
    ini = svc.create_objective_initiative(ctx, user, objective_id, _json())
    return jsonify(ini.to_dict()), 201


@okr_bp.route("/initiatives/<int:initiative_id>", methods=["GET"])
@require_auth
def get_initiative(initiative_id):
    ctx, user = _ctx()
    return jsonify(svc.get_initiative(ctx, user, initiative_id).to_dict()), 200


@okr_bp.route("/initiatives/<int:initiative_id>", methods=["PATCH"])
@require_auth
def update_initiative(initiative_id):
    ctx, user = _ctx()
    return jsonify(svc.update_initiative(ctx, user, initiative_id, _json()).to_dict()), 200


@okr_bp.route("/initiatives/<int:initiative_id>", methods=["DELETE"])
@require_auth
def delete_initiative(initiative_id):
    ctx, user = _ctx()
    svc.delete_initiative(ctx, user, initiative_id)
    return jsonify({"message": "Initiative deleted"}), 200
