"""
Bearer token middleware — first link of the request chain.

    jwt_auth.py  →  tenant_context.py  →  route handler

Reads ``Authorization: Bearer <access token>`` and exposes the verified
claims on ``g``:

    g.jwt_user_id        int | None
    g.jwt_tenant_id      int | None
    g.jwt_tenant_claim   True when the token carried a ``tenant_id`` key at
                         all (a superuser's explicit null vs. a malformed token)
    g.jwt_roles          informational only

A bad or expired token never aborts the request here. It is logged and the
request continues anonymously, so protected routes answer 401 through
``require_auth`` and public ones keep working.
"""

import logging

import jwt as pyjwt
from flask import g, request

from okr_api.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"
# Token verification is not attempted on these.
PUBLIC_PREFIXES = (
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def _bearer_token() -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def _reset_claims() -> None:
    g.jwt_user_id = None
    g.jwt_tenant_id = None
    g.jwt_tenant_claim = False
    g.jwt_roles = []


def init_jwt_middleware(app):
    """Install the bearer-token before_request hook on ``app``."""

    @app.before_request
    def _load_jwt_claims():
        _reset_claims()
        if not request.path.startswith(API_PREFIX) or request.path.startswith(PUBLIC_PREFIXES):
            return

        token = _bearer_token()
        if token is None:
            return
        try:
            claims = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token", extra={"event_type": "token_expired"})
            return
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Rejected access token: %s", exc, extra={"event_type": "token_invalid"})
            return

        g.jwt_user_id = claims["sub"]
        g.jwt_tenant_claim = "tenant_id" in claims
        g.jwt_tenant_id = claims.get("tenant_id")
        g.jwt_roles = claims.get("roles") or []
