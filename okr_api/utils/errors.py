"""Standardised API error responses.

Usage
-----
    from okr_api.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Objective not found")
    return api_error(E.VALIDATION_INVALID, "weight out of range", details={"weight": "…"})
    return api_error(E.AUTHZ_PUBLISH_LOCK, msg, details={"reason": "publish_lock"})
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_        prefix for standard application errors
     • ERR_AUTHZ_  prefix for evaluator denials, one per primary reason
    """

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    TENANT_CONTEXT = "ERR_TENANT_CONTEXT"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Authorisation denials – HTTP 403
    AUTHZ_RBAC = "ERR_AUTHZ_RBAC"
    AUTHZ_PUBLISH_LOCK = "ERR_AUTHZ_PUBLISH_LOCK"
    AUTHZ_VISIBILITY = "ERR_AUTHZ_VISIBILITY"
    AUTHZ_TENANT_MISMATCH = "ERR_AUTHZ_TENANT_MISMATCH"
    AUTHZ_SUPERUSER_READONLY = "ERR_AUTHZ_SUPERUSER_READONLY"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Rate limiting – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHENTICATED: 401,
    E.TENANT_CONTEXT: 403,
    E.FORBIDDEN: 403,
    E.AUTHZ_RBAC: 403,
    E.AUTHZ_PUBLISH_LOCK: 403,
    E.AUTHZ_VISIBILITY: 403,
    E.AUTHZ_TENANT_MISMATCH: 403,
    E.AUTHZ_SUPERUSER_READONLY: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
}

# Evaluator primary reason → error code
AUTHZ_CODES: dict[str, str] = {
    "rbac": E.AUTHZ_RBAC,
    "publish_lock": E.AUTHZ_PUBLISH_LOCK,
    "visibility": E.AUTHZ_VISIBILITY,
    "tenant_mismatch": E.AUTHZ_TENANT_MISMATCH,
    "superuser_readonly": E.AUTHZ_SUPERUSER_READONLY,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
    **extra,
):
    """``(jsonify(body), status)`` for an error, usable as a view return value.

    Body is ``{"error": message, "code": code}`` plus ``details`` when given
    and any ``extra`` keys at top level (a denial adds ``reason``,
    ``reasons``, ``lock_reason``). Status defaults from the code, then 400.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    body.update(extra)
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)
