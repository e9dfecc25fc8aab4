"""
JWT Service — issue and verify the bearer tokens this API trusts.

Two token types share one claim layout and one HS256 secret:

    access   JWT_ACCESS_EXPIRES  (default 15 min)   carries ``roles``
    refresh  JWT_REFRESH_EXPIRES (default 7 days)   exchanged at /auth/refresh

Claims:
    sub        user id, encoded as a string (PyJWT requires it)
    tenant_id  the user's tenant; explicit null for platform superusers
    type       "access" | "refresh"
    iat, exp, jti

``tenant_id`` is written even when null. The tenant context middleware
treats a missing claim as malformed and only a present-but-null claim as
platform scope, so the two must never be confused.

``roles`` is informational for clients. Authorisation always re-reads role
assignments from the database.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

_LIFETIME_KEYS = {
    ACCESS: ("JWT_ACCESS_EXPIRES", 900),
    REFRESH: ("JWT_REFRESH_EXPIRES", 604800),
}


def _secret() -> str:
    cfg = current_app.config
    return cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]


def token_lifetime(token_type: str) -> int:
    """Lifetime in seconds for ``token_type`` under the current app config."""
    key, default = _LIFETIME_KEYS[token_type]
    return int(current_app.config.get(key, default))


def _encode(token_type: str, user_id: int, tenant_id: int | None, **claims) -> str:
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "tenant_id": tenant_id,
        "type": token_type,
        "iat": issued,
        "exp": issued + timedelta(seconds=token_lifetime(token_type)),
        "jti": uuid.uuid4().hex,
        **claims,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def generate_access_token(user_id: int, tenant_id: int | None, roles: list[str]) -> str:
    return _encode(ACCESS, user_id, tenant_id, roles=list(roles))


def generate_refresh_token(user_id: int, tenant_id: int | None) -> str:
    return _encode(REFRESH, user_id, tenant_id)


def generate_token_pair(user_id: int, tenant_id: int | None, roles: list[str]) -> dict:
    """Response body for a successful refresh."""
    return {
        "access_token": generate_access_token(user_id, tenant_id, roles),
        "refresh_token": generate_refresh_token(user_id, tenant_id),
        "token_type": "Bearer",
        "expires_in": token_lifetime(ACCESS),
    }


def decode_token(token: str, expected_type: str = ACCESS) -> dict:
    """
    Verify signature, expiry and type; return the claims with ``sub`` as int.

    Raises:
        jwt.ExpiredSignatureError: token expired.
        jwt.InvalidTokenError: bad signature, wrong type, or non-numeric subject.
    """
    claims = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    if claims.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {claims.get('type')!r}")
    try:
        claims["sub"] = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise jwt.InvalidTokenError("Token subject is not a user id") from None
    return claims


def decode_access_token(token: str) -> dict:
    return decode_token(token, ACCESS)


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, REFRESH)
