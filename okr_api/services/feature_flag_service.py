"""
Feature Flag Service — per-user feature flags.

Flags live in ``User.settings["features"]``. The only flag consumed today is
``rbacInspector`` (read by the explain surface). Older clients wrote
``settings["debug"]["rbacInspectorEnabled"]``; that location is still
honoured on read and cleared on write.
"""

import logging

from okr_api.core.exceptions import NotFoundError
from okr_api.models import db
from okr_api.models.audit import write_audit
from okr_api.models.auth import User

logger = logging.getLogger(__name__)

RBAC_INSPECTOR = "rbacInspector"


def get_user_features(user: User) -> dict:
    """Return the user's feature map with the legacy inspector key folded in."""
    settings = user.settings or {}
    features = dict(settings.get("features") or {})
    if RBAC_INSPECTOR not in features:
        legacy = (settings.get("debug") or {}).get("rbacInspectorEnabled")
        features[RBAC_INSPECTOR] = bool(legacy)
    return features


def is_rbac_inspector_enabled(user: User) -> bool:
    return bool(get_user_features(user).get(RBAC_INSPECTOR))


def set_rbac_inspector(
    *,
    tenant_id: int,
    user_id: int,
    enabled: bool,
    actor_user_id: int,
) -> dict:
    """Toggle the inspector for a user of ``tenant_id``. Audited. Commits."""
    user = db.session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise NotFoundError(resource="User", resource_id=user_id, tenant_id=tenant_id)

    settings = dict(user.settings or {})
    features = dict(settings.get("features") or {})
    previous = is_rbac_inspector_enabled(user)
    features[RBAC_INSPECTOR] = bool(enabled)
    settings["features"] = features
    debug = dict(settings.get("debug") or {})
    if debug.pop("rbacInspectorEnabled", None) is not None:
        settings["debug"] = debug
    # Reassign so the JSON column is flagged dirty.
    user.settings = settings

    write_audit(
        action="feature_flag.rbac_inspector",
        target_type="user",
        target_id=user_id,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        metadata={"flag": RBAC_INSPECTOR, "old": previous, "new": bool(enabled)},
    )
    db.session.commit()
    logger.info("rbacInspector=%s for user %s (by %s)", bool(enabled), user_id, actor_user_id)
    return get_user_features(user)
