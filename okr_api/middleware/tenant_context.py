"""
Tenant Context Middleware — resolves the acting tenant for every API request.

Chain order:
  jwt_auth.py  →  tenant_context.py  →  route handler

Resolution order (first match wins):
  1. authenticated user's token claim (``tenant_id``; explicit null on a
     superuser's token means "platform scope")
  2. ``X-Tenant-Id`` header (numeric id or slug)
  3. subdomain slug (``acme.okr.example.com`` → ``acme``)

The result is a ``TenantContext`` stored on ``g.tenant_context`` for the
lifetime of the request. ``g`` lives in Flask's per-request context, which
is backed by contextvars, so concurrent requests never share it. Services do
NOT read ``g``: blueprints pass the context to them explicitly.

Three states, never conflated:
  resolved, tenant_id=<int>    normal tenant scope
  resolved, tenant_id=None     platform superuser (read-only, cross-tenant)
  unresolved                   nothing matched → protected routes fail closed

Before any of this, deprecated tenant field names in the JSON body and the
query string (``organizationId``, ``organization_id``, ``orgId``,
``tenantId``) are rewritten in place to the canonical ``tenant_id``.
"""

import logging
from dataclasses import dataclass

from flask import current_app, g, jsonify, request
from werkzeug.datastructures import ImmutableMultiDict

from okr_api.models import db
from okr_api.models.auth import Tenant, User

logger = logging.getLogger(__name__)

CANONICAL_TENANT_FIELD = "tenant_id"
LEGACY_TENANT_FIELDS = ("organizationId", "organization_id", "orgId", "tenantId")

TENANT_HEADER = "X-Tenant-Id"
DEFAULT_SUBDOMAIN_IGNORE = ("www", "api", "app")

# Paths that skip tenant context entirely
TENANT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/api/v1/auth/refresh",
)


@dataclass(frozen=True)
class TenantContext:
    tenant_id: int | None = None
    user_id: int | None = None
    source: str | None = None   # "token" | "header" | "subdomain" | None
    is_superuser: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.source is not None

    @property
    def is_platform_scope(self) -> bool:
        return self.is_resolved and self.is_superuser and self.tenant_id is None


UNRESOLVED = TenantContext()


# ═══════════════════════════════════════════════════════════════
# Legacy field normalisation
# ═══════════════════════════════════════════════════════════════

def normalize_tenant_fields(mapping: dict) -> list[str]:
    """Rewrite deprecated tenant keys to ``tenant_id`` in place.

    The canonical key wins if both are present. Returns the legacy names seen.
    """
    seen = []
    for name in LEGACY_TENANT_FIELDS:
        if name in mapping:
            value = mapping.pop(name)
            seen.append(name)
            mapping.setdefault(CANONICAL_TENANT_FIELD, value)
    return seen


def _normalize_request():
    seen = []
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        # get_json caches the parsed dict, so handlers see the rewritten keys.
        seen += normalize_tenant_fields(body)

    if any(name in request.args for name in LEGACY_TENANT_FIELDS):
        items = [(k, v) for k, v in request.args.items(multi=True) if k not in LEGACY_TENANT_FIELDS]
        if CANONICAL_TENANT_FIELD not in request.args:
            for name in LEGACY_TENANT_FIELDS:
                if name in request.args:
                    items.append((CANONICAL_TENANT_FIELD, request.args[name]))
                    break
        seen += [name for name in LEGACY_TENANT_FIELDS if name in request.args]
        request.args = ImmutableMultiDict(items)

    if seen:
        logger.warning(
            "Deprecated tenant field(s) %s on %s %s; use '%s'",
            sorted(set(seen)), request.method, request.path, CANONICAL_TENANT_FIELD,
            extra={"event_type": "legacy_tenant_field"},
        )


# ═══════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════

def _lookup_tenant(ref: str) -> Tenant | None:
    ref = (ref or "").strip()
    if not ref:
        return None
    if ref.isdigit():
        return db.session.get(Tenant, int(ref))
    return Tenant.query.filter_by(slug=ref.lower()).first()


def subdomain_slug(host: str, base: str | None = None, ignore=DEFAULT_SUBDOMAIN_IGNORE) -> str | None:
    """Extract a tenant slug from a Host header value."""
    hostname = (host or "").split(":", 1)[0].lower().rstrip(".")
    if not hostname or hostname.replace(".", "").isdigit():
        return None
    if base:
        base = base.lower().lstrip(".")
        if not hostname.endswith("." + base):
            return None
        label = hostname[: -(len(base) + 1)].split(".")[-1]
    else:
        parts = hostname.split(".")
        if len(parts) < 3:
            return None
        label = parts[0]
    if not label or label in ignore:
        return None
    return label


def _resolve_from_token(user_id: int) -> TenantContext:
    user = db.session.get(User, user_id)
    if user is None or user.status != "active":
        logger.warning("Token user %s missing or inactive", user_id,
                       extra={"event_type": "tenant_unresolved"})
        return UNRESOLVED
    claim = g.jwt_tenant_id
    if user.is_superuser:
        if g.jwt_tenant_claim and claim is None:
            return TenantContext(tenant_id=None, user_id=user.id, source="token", is_superuser=True)
        logger.warning("Superuser %s token carries tenant claim %r", user.id, claim,
                       extra={"event_type": "tenant_unresolved"})
        return TenantContext(user_id=user.id, is_superuser=True)
    if claim is None or claim != user.tenant_id:
        logger.warning("Token tenant claim %r does not match user %s", claim, user.id,
                       extra={"event_type": "tenant_unresolved", "tenant_id": user.tenant_id})
        return TenantContext(user_id=user.id)
    return TenantContext(tenant_id=claim, user_id=user.id, source="token")


def resolve_tenant_context() -> TenantContext:
    """Apply the resolution order to the current request."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is not None:
        return _resolve_from_token(user_id)

    header = request.headers.get(TENANT_HEADER)
    if header:
        tenant = _lookup_tenant(header)
        if tenant is not None:
            return TenantContext(tenant_id=tenant.id, source="header")

    slug = subdomain_slug(
        request.host,
        current_app.config.get("TENANT_SUBDOMAIN_BASE"),
        current_app.config.get("TENANT_SUBDOMAIN_IGNORE", DEFAULT_SUBDOMAIN_IGNORE),
    )
    if slug:
        tenant = _lookup_tenant(slug)
        if tenant is not None:
            return TenantContext(tenant_id=tenant.id, source="subdomain")

    return UNRESOLVED


def current_tenant_context() -> TenantContext:
    return getattr(g, "tenant_context", UNRESOLVED)


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.tenant_context = UNRESOLVED
        g.tenant = None

        if not request.path.startswith("/api/v1/"):
            return None
        for prefix in TENANT_SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        _normalize_request()
        ctx = resolve_tenant_context()
        g.tenant_context = ctx

        if ctx.tenant_id is not None:
            tenant = db.session.get(Tenant, ctx.tenant_id)
            if tenant is None or not tenant.is_active:
                logger.warning("Tenant %s missing or deactivated", ctx.tenant_id,
                               extra={"event_type": "tenant_unresolved", "tenant_id": ctx.tenant_id})
                return jsonify({"error": "Tenant account is deactivated",
                                "code": "ERR_TENANT_CONTEXT"}), 403
            g.tenant = tenant
        return None

    logger.info("Tenant context middleware installed")
