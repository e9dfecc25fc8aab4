"""
Auth Blueprint — token refresh.

  POST /api/v1/auth/refresh     — Refresh token → new token pair

Identity (login, SSO) is issued upstream; this service only rotates the
tokens it already trusts. The tenant claim is re-derived from the user row,
never copied from the old token, so a user moved between tenants picks up
the new tenant on the next refresh.
"""

import logging

import jwt as pyjwt
from flask import Blueprint, jsonify, request

from okr_api.models import db
from okr_api.models.auth import User
from okr_api.services import role_service
from okr_api.services.jwt_service import decode_refresh_token, generate_token_pair
from okr_api.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new token pair.

    Body: { "refresh_token": "..." }
    """
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refresh_token", "")

    if not refresh_token:
        return api_error(E.VALIDATION_REQUIRED, "Refresh token is required")

    try:
        payload = decode_refresh_token(refresh_token)
    except pyjwt.InvalidTokenError:
        return api_error(E.UNAUTHENTICATED, "Invalid or expired refresh token")

    user = db.session.get(User, payload["sub"])
    if user is None or user.status != "active":
        return api_error(E.UNAUTHENTICATED, "User inactive or not found")

    tenant_id = None if user.is_superuser else user.tenant_id
    roles = [] if user.is_superuser else role_service.get_effective_roles_sorted(user.id, tenant_id)
    logger.info("Token refreshed for user %s", user.id)
    return jsonify(generate_token_pair(user.id, tenant_id, roles)), 200
