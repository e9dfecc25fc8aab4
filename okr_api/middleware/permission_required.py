"""
Route guards — authenticated user + resolved tenant context.

Usage:
    @okr_bp.route("/objectives", methods=["POST"])
    @require_auth
    def create_objective():
        ctx, user = g.tenant_context, g.current_user
        ...

    @rbac_bp.route("/assignments", methods=["POST"])
    @require_auth(allow_platform_scope=False)
    def assign():
        ...

``require_auth`` answers 401 when no JWT user is present and 403 when the
tenant context could not be resolved (fail closed). Finer-grained decisions
(role, lock, visibility) belong to the evaluator, called by the services.
"""

import functools
import logging

from flask import g

from okr_api.middleware.tenant_context import current_tenant_context
from okr_api.models import db
from okr_api.models.auth import User
from okr_api.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def require_auth(f=None, *, allow_platform_scope: bool = True):
    """Decorator: require a JWT user and a resolved tenant context.

    Sets ``g.current_user``. With ``allow_platform_scope=False`` the route
    additionally refuses superusers acting without a tenant.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def decorated(*args, **kwargs):
            user_id = getattr(g, "jwt_user_id", None)
            if user_id is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required")

            ctx = current_tenant_context()
            if not ctx.is_resolved or ctx.user_id != user_id:
                logger.warning("Unresolved tenant context for user %s", user_id,
                               extra={"event_type": "tenant_unresolved"})
                return api_error(E.TENANT_CONTEXT, "Tenant context could not be established")
            if ctx.is_platform_scope and not allow_platform_scope:
                return api_error(E.TENANT_CONTEXT, "This endpoint requires a tenant scope")

            g.current_user = db.session.get(User, user_id)
            return fn(*args, **kwargs)
        return decorated

    if f is not None:
        return decorator(f)
    return decorator
