"""
Per-tenant rate limits, attached to blueprints after registration.

The Limiter in ``okr_api/__init__.py`` has no default limits. Here:

    exec_whitelist          EXEC_WHITELIST_RATE_LIMIT, every method
    okr / cycle / rbac      60/minute, mutations only
    health                  exempt

Limits are counted per acting tenant, so one noisy tenant cannot starve
another behind the same proxy address. Anonymous traffic falls back to the
client address.
"""

import logging

from flask import g, request

logger = logging.getLogger(__name__)

MUTATION_LIMIT = "60/minute"
MUTATION_LIMITED_BLUEPRINTS = ("okr", "cycle", "rbac")
READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def tenant_rate_limit_key() -> str:
    ctx = getattr(g, "tenant_context", None)
    tenant_id = getattr(ctx, "tenant_id", None)
    if tenant_id is not None:
        return f"tenant:{tenant_id}"
    return f"ip:{request.remote_addr or 'unknown'}"


def _is_read() -> bool:
    return request.method in READ_METHODS


def init_rate_limits(app, limiter):
    if app.config.get("TESTING"):
        return

    blueprints = app.blueprints
    whitelist_limit = app.config["EXEC_WHITELIST_RATE_LIMIT"]

    if "exec_whitelist" in blueprints:
        limiter.limit(whitelist_limit, key_func=tenant_rate_limit_key)(blueprints["exec_whitelist"])
    for name in MUTATION_LIMITED_BLUEPRINTS:
        if name in blueprints:
            limiter.limit(MUTATION_LIMIT, key_func=tenant_rate_limit_key, exempt_when=_is_read)(blueprints[name])
    if "health" in blueprints:
        limiter.exempt(blueprints["health"])

    logger.info(
        "Rate limits: exec whitelist %s, mutations %s (per tenant)", whitelist_limit, MUTATION_LIMIT,
        extra={"event_type": "rate_limits_configured"},
    )
