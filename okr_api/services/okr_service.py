"""
OKR Service — Objectives, Key Results, Initiatives, Check-ins.

Every mutation follows the same shape:

    1. load the target with a tenant-scoped lookup (404 outside the tenant)
    2. 404 if the caller cannot see it (no existence disclosure)
    3. ask the evaluator; a denial becomes AuthorizationDenied (403)
    4. validate input (ValidationError, 422)
    5. apply the change + one audit row, commit once

Services receive the request's TenantContext and acting User explicitly;
nothing here reads flask.g.

Usage:
    from okr_api.services import okr_service as svc

    obj = svc.create_objective(ctx, user, {"title": "Grow ARR", "visibility_level": "PRIVATE"})
    svc.publish_objective(ctx, user, obj.id)
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from okr_api.core.exceptions import ConflictError, NotFoundError, ValidationError
from okr_api.models import db
from okr_api.models.audit import write_audit
from okr_api.models.auth import Team, User, Workspace
from okr_api.models.okr import (
    OKR_STATUSES,
    CheckIn,
    Cycle,
    Initiative,
    KeyResult,
    Objective,
    ObjectiveKeyResult,
    OkrAccessGrant,
)
from okr_api.services.access_context import (
    ResourceContext,
    build_principal,
    resource_for_key_result,
    resource_for_objective,
    resource_for_scope,
)
from okr_api.services.authorisation import Action
from okr_api.services.helpers.guards import authorize, check_requested_tenant, ensure_visible
from okr_api.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from okr_api.services.publish_lock import validate_publish_transition
from okr_api.services.visibility import AssignableVisibility, can_view, parse_assignable_visibility

logger = logging.getLogger(__name__)

DEFAULT_MAX_KR_WEIGHT = 3.0
MAX_TITLE_LENGTH = 300
INITIATIVE_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "DONE", "BLOCKED")


def _scope_kwargs(ctx, tenant_id: int | None = None) -> dict:
    """Lookup scope: acting tenant, or any tenant for platform-scope reads."""
    if ctx.is_platform_scope:
        return {"tenant_id": tenant_id} if tenant_id is not None else {"any_tenant": True}
    return {"tenant_id": ctx.tenant_id}


def _read_tenant(ctx, requested_tenant_id) -> int:
    if not ctx.is_platform_scope:
        return ctx.tenant_id
    if requested_tenant_id is None:
        raise ValidationError(
            "tenant_id is required for platform-scope reads",
            details={"tenant_id": "required"},
        )
    return int(requested_tenant_id)


# ═══════════════════════════════════════════════════════════════
# Validation helpers
# ═══════════════════════════════════════════════════════════════

def max_kr_weight() -> float:
    return float(current_app.config.get("OKR_MAX_KR_WEIGHT", DEFAULT_MAX_KR_WEIGHT))


def validate_weight(value) -> float:
    ceiling = max_kr_weight()
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise ValidationError("weight must be a number", details={"weight": "not a number"}) from None
    if weight < 0 or weight > ceiling:
        raise ValidationError(
            f"weight must be between 0 and {ceiling}",
            details={"weight": f"out of range [0, {ceiling}]"},
        )
    return weight


def _validate_title(data: dict, required: bool) -> str | None:
    if "title" not in data:
        if required:
            raise ValidationError("Title is required", details={"title": "required"})
        return None
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required", details={"title": "required"})
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title must be at most {MAX_TITLE_LENGTH} characters",
            details={"title": "too long"},
        )
    return title


def _validate_status(value, allowed=OKR_STATUSES) -> str:
    if value not in allowed:
        raise ValidationError(
            f"Invalid status '{value}'",
            details={"status": f"one of {', '.join(allowed)}"},
        )
    return value


def _validate_float(data: dict, field: str):
    try:
        return float(data[field])
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"}) from None


def _optional_id(value, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id", details={field: "invalid"})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id", details={field: "invalid"}) from None


def _resolve_placement(tenant_id: int, data: dict, defaults=None) -> dict:
    """Validate workspace/team/cycle ids against the tenant."""
    defaults = defaults or {}
    workspace_id = _optional_id(data.get("workspace_id", defaults.get("workspace_id")), "workspace_id")
    team_id = _optional_id(data.get("team_id", defaults.get("team_id")), "team_id")
    cycle_id = _optional_id(data.get("cycle_id", defaults.get("cycle_id")), "cycle_id")

    team = get_scoped_or_none(Team, team_id, tenant_id=tenant_id) if team_id is not None else None
    if team_id is not None and team is None:
        raise ValidationError("Unknown team", details={"team_id": "not found"})
    if team is not None:
        if workspace_id is not None and workspace_id != team.workspace_id:
            raise ValidationError(
                "Team does not belong to the workspace",
                details={"team_id": "workspace mismatch"},
            )
        workspace_id = team.workspace_id
    if workspace_id is not None and get_scoped_or_none(Workspace, workspace_id, tenant_id=tenant_id) is None:
        raise ValidationError("Unknown workspace", details={"workspace_id": "not found"})
    if cycle_id is not None and get_scoped_or_none(Cycle, cycle_id, tenant_id=tenant_id) is None:
        raise ValidationError("Unknown cycle", details={"cycle_id": "not found"})
    return {"workspace_id": workspace_id, "team_id": team_id, "cycle_id": cycle_id}


def _resolve_owner(tenant_id: int, owner_id, default: int) -> int:
    if owner_id is None:
        return default
    owner = db.session.get(User, _optional_id(owner_id, "owner_id"))
    if owner is None or owner.tenant_id != tenant_id:
        raise ValidationError("Owner must be a user of this organization", details={"owner_id": "not found"})
    return owner.id


def _visibility(data: dict, default: str | None) -> str | None:
    if "visibility_level" not in data:
        return default
    return parse_assignable_visibility(data["visibility_level"]).value


def _inherited_visibility(obj: Objective) -> str:
    """Default level for a new Key Result: the parent's, when still assignable."""
    if obj.visibility_level in {v.value for v in AssignableVisibility}:
        return obj.visibility_level
    return AssignableVisibility.PUBLIC_TENANT.value


def _apply_changes(entity, changes: dict) -> dict:
    """Set attributes; return {field: {old, new}} for the ones that changed."""
    diff = {}
    for field, new in changes.items():
        old = getattr(entity, field)
        if old != new:
            setattr(entity, field, new)
            diff[field] = {"old": old, "new": new}
    return diff


# ═══════════════════════════════════════════════════════════════
# Progress roll-up
# ═══════════════════════════════════════════════════════════════

def kr_progress(kr: KeyResult) -> float:
    """Linear progress from start to target, clamped to [0, 100]."""
    span = (kr.target_value or 0.0) - (kr.start_value or 0.0)
    if span == 0:
        return 100.0 if (kr.current_value or 0.0) >= (kr.target_value or 0.0) else 0.0
    pct = ((kr.current_value or 0.0) - (kr.start_value or 0.0)) / span * 100.0
    return max(0.0, min(100.0, pct))


def recompute_objective_progress(obj: Objective) -> float:
    """Weighted mean of linked KR progress; 0 when no positive weight."""
    total_weight = 0.0
    weighted = 0.0
    for link in obj.kr_links:
        if link.weight <= 0 or link.key_result is None:
            continue
        total_weight += link.weight
        weighted += link.weight * (link.key_result.progress or 0.0)
    obj.progress = weighted / total_weight if total_weight else 0.0
    return obj.progress


def _recompute_for_kr(kr: KeyResult) -> None:
    for link in kr.objective_links:
        if link.objective is not None:
            recompute_objective_progress(link.objective)


# ═══════════════════════════════════════════════════════════════
# Objectives
# ═══════════════════════════════════════════════════════════════

def get_objective(ctx, user, objective_id: int) -> Objective:
    """Visible objective or NotFoundError."""
    obj = get_scoped(Objective, objective_id, **_scope_kwargs(ctx))
    ensure_visible(ctx, user, resource_for_objective(obj), "Objective")
    return obj


def visible_key_result_links(ctx, user, obj: Objective) -> list[ObjectiveKeyResult]:
    """Links under ``obj`` whose Key Result the caller may see."""
    visible = []
    for link in obj.kr_links:
        kr = link.key_result
        if kr is None:
            continue
        principal = build_principal(ctx, user, workspace_id=kr.workspace_id, team_id=kr.team_id)
        if can_view(principal, resource_for_key_result(kr)):
            visible.append(link)
    return visible


def list_objectives(ctx, user, *, tenant_id=None, cycle_id=None, workspace_id=None, team_id=None) -> list[Objective]:
    """All objectives of the tenant the caller can see, optionally filtered."""
    read_tenant = _read_tenant(ctx, tenant_id)
    q = Objective.query_for_tenant(read_tenant)
    if cycle_id is not None:
        q = q.filter_by(cycle_id=cycle_id)
    if workspace_id is not None:
        q = q.filter_by(workspace_id=workspace_id)
    if team_id is not None:
        q = q.filter_by(team_id=team_id)

    visible = []
    for obj in q.order_by(Objective.id).all():
        resource = resource_for_objective(obj)
        principal = build_principal(ctx, user, workspace_id=obj.workspace_id, team_id=obj.team_id)
        if can_view(principal, resource):
            visible.append(obj)
    return visible


def create_objective(ctx, user, data: dict) -> Objective:
    check_requested_tenant(ctx, user, Action.CREATE, data)
    if ctx.is_platform_scope:
        # Superusers have no tenant to create in; the evaluator denies read-only.
        authorize(ctx, user, Action.CREATE, resource_for_scope(None, kind="objective_scope"))
    tenant_id = ctx.tenant_id
    title = _validate_title(data, required=True)
    status = _validate_status(data.get("status", "ON_TRACK"))
    visibility = _visibility(data, AssignableVisibility.PUBLIC_TENANT.value)
    placement = _resolve_placement(tenant_id, data)

    authorize(ctx, user, Action.CREATE, resource_for_scope(
        tenant_id, kind="objective_scope",
        workspace_id=placement["workspace_id"], team_id=placement["team_id"],
    ))
    owner_id = _resolve_owner(tenant_id, data.get("owner_id"), user.id)

    # New content inherits its cycle's lock from the first moment.
    cycle = get_scoped_or_none(Cycle, placement["cycle_id"], tenant_id=tenant_id)
    authorize(ctx, user, Action.EDIT, ResourceContext(
        kind="objective",
        tenant_id=tenant_id,
        owner_id=user.id,
        workspace_id=placement["workspace_id"],
        team_id=placement["team_id"],
        visibility_level=visibility,
        cycle_status=cycle.status if cycle is not None else None,
    ))

    obj = Objective(
        tenant_id=tenant_id,
        title=title,
        description=data.get("description") or "",
        status=status,
        owner_id=owner_id,
        visibility_level=visibility,
        is_published=False,
        **placement,
    )
    db.session.add(obj)
    db.session.flush()
    write_audit(
        action="objective.create",
        target_type="objective",
        target_id=obj.id,
        tenant_id=tenant_id,
        actor_user_id=user.id,
        metadata={"title": title, "visibility_level": visibility, **placement},
    )
    db.session.commit()
    logger.info("Objective %s created in tenant %s by user %s", obj.id, tenant_id, user.id)
    return obj


def update_objective(ctx, user, objective_id: int, data: dict) -> Objective:
    check_requested_tenant(ctx, user, Action.EDIT, data)
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.EDIT, resource_for_objective(obj))

    changes = {}
    title = _validate_title(data, required=False)
    if title is not None:
        changes["title"] = title
    if "description" in data:
        changes["description"] = data.get("description") or ""
    if "status" in data:
        changes["status"] = _validate_status(data["status"])
    if "visibility_level" in data:
        changes["visibility_level"] = _visibility(data, None)
    if any(k in data for k in ("workspace_id", "team_id", "cycle_id")):
        changes.update(_resolve_placement(obj.tenant_id, data, defaults={
            "workspace_id": obj.workspace_id, "team_id": obj.team_id, "cycle_id": obj.cycle_id,
        }))
    if "owner_id" in data:
        changes["owner_id"] = _resolve_owner(obj.tenant_id, data["owner_id"], obj.owner_id)

    diff = _apply_changes(obj, changes)
    if diff:
        write_audit(
            action="objective.update",
            target_type="objective",
            target_id=obj.id,
            tenant_id=obj.tenant_id,
            actor_user_id=user.id,
            metadata={"changes": diff},
        )
    db.session.commit()
    return obj


def delete_objective(ctx, user, objective_id: int) -> None:
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.DELETE, resource_for_objective(obj))

    linked = Initiative.query.filter_by(objective_id=obj.id).count()
    if linked:
        raise ConflictError(
            "Objective", "initiatives", str(linked),
            message=f"Cannot delete this objective: {linked} initiative(s) are linked to it. "
                    "Remove or re-link them first.",
        )

    snapshot = obj.to_dict()
    db.session.delete(obj)
    write_audit(
        action="objective.delete",
        target_type="objective",
        target_id=objective_id,
        tenant_id=snapshot["tenant_id"],
        actor_user_id=user.id,
        metadata={"snapshot": snapshot},
    )
    db.session.commit()
    logger.info("Objective %s deleted by user %s", objective_id, user.id)


def _set_published(entity, target_type: str, user, action: str) -> None:
    check = validate_publish_transition(entity.is_published, action)
    if not check["valid"]:
        raise ConflictError(target_type, "is_published", str(entity.is_published), message=check["reason"])
    entity.is_published = check["to"]
    if check["to"]:
        entity.published_at = datetime.now(timezone.utc)
        entity.published_by = user.id
    write_audit(
        action=f"{target_type}.{action}",
        target_type=target_type,
        target_id=entity.id,
        tenant_id=entity.tenant_id,
        actor_user_id=user.id,
        metadata={"is_published": {"old": check["from"], "new": check["to"]}},
    )
    # One commit: the flag flip and its audit row land together.
    db.session.commit()
    logger.info("%s %s: %s by user %s", target_type, entity.id, action, user.id)


def publish_objective(ctx, user, objective_id: int) -> Objective:
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.PUBLISH, resource_for_objective(obj))
    _set_published(obj, "objective", user, "publish")
    return obj


def unpublish_objective(ctx, user, objective_id: int) -> Objective:
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.UNPUBLISH, resource_for_objective(obj))
    _set_published(obj, "objective", user, "unpublish")
    return obj


def grant_access(ctx, user, objective_id: int, grantee_id: int) -> OkrAccessGrant:
    """Give one user explicit read access to a (PRIVATE) objective."""
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.EDIT, resource_for_objective(obj))
    grantee = db.session.get(User, grantee_id)
    if grantee is None or grantee.tenant_id != obj.tenant_id:
        raise ValidationError("Grantee must be a user of this organization", details={"user_id": "not found"})
    if OkrAccessGrant.query.filter_by(objective_id=obj.id, user_id=grantee.id).first():
        raise ConflictError("OkrAccessGrant", "user_id", str(grantee.id))

    grant = OkrAccessGrant(tenant_id=obj.tenant_id, objective_id=obj.id, user_id=grantee.id, granted_by=user.id)
    db.session.add(grant)
    write_audit(
        action="objective.grant_access",
        target_type="objective",
        target_id=obj.id,
        tenant_id=obj.tenant_id,
        actor_user_id=user.id,
        metadata={"user_id": grantee.id},
    )
    db.session.commit()
    return grant


def revoke_access(ctx, user, objective_id: int, grantee_id: int) -> None:
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.EDIT, resource_for_objective(obj))
    grant = OkrAccessGrant.query.filter_by(objective_id=obj.id, user_id=grantee_id).first()
    if grant is None:
        raise NotFoundError(resource="OkrAccessGrant", resource_id=grantee_id)
    db.session.delete(grant)
    write_audit(
        action="objective.revoke_access",
        target_type="objective",
        target_id=obj.id,
        tenant_id=obj.tenant_id,
        actor_user_id=user.id,
        metadata={"user_id": grantee_id},
    )
    db.session.commit()


# ═══════════════════════════════════════════════════════════════
# Key Results
# ═══════════════════════════════════════════════════════════════

def get_key_result(ctx, user, key_result_id: int) -> KeyResult:
    kr = get_scoped(KeyResult, key_result_id, **_scope_kwargs(ctx))
    ensure_visible(ctx, user, resource_for_key_result(kr), "KeyResult")
    return kr


def create_key_result(ctx, user, objective_id: int, data: dict) -> KeyResult:
    """Create a Key Result and link it to the objective with a weight."""
    check_requested_tenant(ctx, user, Action.EDIT, data)
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.EDIT, resource_for_objective(obj))

    title = _validate_title(data, required=True)
    status = _validate_status(data.get("status", "ON_TRACK"))
    visibility = _visibility(data, _inherited_visibility(obj))
    weight = validate_weight(data.get("weight", 1.0))
    placement = _resolve_placement(obj.tenant_id, data, defaults={
        "workspace_id": obj.workspace_id, "team_id": obj.team_id, "cycle_id": None,
    })
    values = {f: _validate_float(data, f) for f in ("start_value", "target_value", "current_value") if f in data}

    kr = KeyResult(
        tenant_id=obj.tenant_id,
        title=title,
        description=data.get("description") or "",
        status=status,
        owner_id=_resolve_owner(obj.tenant_id, data.get("owner_id"), user.id),
        visibility_level=visibility,
        unit=data.get("unit") or "",
        **placement,
        **values,
    )
    db.session.add(kr)
    db.session.flush()
    kr.progress = kr_progress(kr)
    db.session.add(ObjectiveKeyResult(objective_id=obj.id, key_result_id=kr.id, weight=weight))
    db.session.flush()
    recompute_objective_progress(obj)
    write_audit(
        action="key_result.create",
        target_type="key_result",
        target_id=kr.id,
        tenant_id=obj.tenant_id,
        actor_user_id=user.id,
        metadata={"objective_id": obj.id, "weight": weight, "title": title},
    )
    db.session.commit()
    return kr


def link_key_result(ctx, user, objective_id: int, key_result_id: int, weight) -> ObjectiveKeyResult:
    """Link (or re-weight) a Key Result under an objective."""
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.EDIT, resource_for_objective(obj))
    kr = get_key_result(ctx, user, key_result_id)
    if kr.tenant_id != obj.tenant_id:
        raise NotFoundError(resource="KeyResult", resource_id=key_result_id)
    weight = validate_weight(weight)

    link = db.session.get(ObjectiveKeyResult, (obj.id, kr.id))
    old = link.weight if link is not None else None
    if link is None:
        link = ObjectiveKeyResult(objective_id=obj.id, key_result_id=kr.id, weight=weight)
        db.session.add(link)
    else:
        link.weight = weight
    db.session.flush()
    db.session.refresh(obj)
    recompute_objective_progress(obj)
    write_audit(
        action="key_result.link" if old is None else "key_result.reweight",
        target_type="key_result",
        target_id=kr.id,
        tenant_id=obj.tenant_id,
        actor_user_id=user.id,
        metadata={"objective_id": obj.id, "weight": {"old": old, "new": weight}},
    )
    db.session.commit()
    return link


def update_key_result(ctx, user, key_result_id: int, data: dict) -> KeyResult:
    check_requested_tenant(ctx, user, Action.EDIT, data)
    kr = get_key_result(ctx, user, key_result_id)
    authorize(ctx, user, Action.EDIT, resource_for_key_result(kr))

    changes = {}
    title = _validate_title(data, required=False)
    if title is not None:
        changes["title"] = title
    if "description" in data:
        changes["description"] = data.get("description") or ""
    if "status" in data:
        changes["status"] = _validate_status(data["status"])
    if "visibility_level" in data:
        changes["visibility_level"] = _visibility(data, None)
    if "unit" in data:
        changes["unit"] = data.get("unit") or ""
    for field in ("start_value", "target_value", "current_value"):
        if field in data:
            changes[field] = _validate_float(data, field)
    if any(k in data for k in ("workspace_id", "team_id", "cycle_id")):
        changes.update(_resolve_placement(kr.tenant_id, data, defaults={
            "workspace_id": kr.workspace_id, "team_id": kr.team_id, "cycle_id": kr.cycle_id,
        }))
    if "owner_id" in data:
        changes["owner_id"] = _resolve_owner(kr.tenant_id, data["owner_id"], kr.owner_id)

    diff = _apply_changes(kr, changes)
    if diff:
        kr.progress = kr_progress(kr)
        _recompute_for_kr(kr)
        write_audit(
            action="key_result.update",
            target_type="key_result",
            target_id=kr.id,
            tenant_id=kr.tenant_id,
            actor_user_id=user.id,
            metadata={"changes": diff},
        )
    db.session.commit()
    return kr


def delete_key_result(ctx, user, key_result_id: int) -> None:
    kr = get_key_result(ctx, user, key_result_id)
    authorize(ctx, user, Action.DELETE, resource_for_key_result(kr))

    linked = kr.initiatives.count()
    if linked:
        raise ConflictError(
            "KeyResult", "initiatives", str(linked),
            message=f"Cannot delete this key result: {linked} initiative(s) are linked to it. "
                    "Remove or re-link them first.",
        )

    objectives = [link.objective for link in kr.objective_links if link.objective is not None]
    snapshot = kr.to_dict()
    db.session.delete(kr)
    db.session.flush()
    for obj in objectives:
        db.session.refresh(obj)
        recompute_objective_progress(obj)
    write_audit(
        action="key_result.delete",
        target_type="key_result",
        target_id=key_result_id,
        tenant_id=snapshot["tenant_id"],
        actor_user_id=user.id,
        metadata={"snapshot": snapshot},
    )
    db.session.commit()


def publish_key_result(ctx, user, key_result_id: int) -> KeyResult:
    kr = get_key_result(ctx, user, key_result_id)
    authorize(ctx, user, Action.PUBLISH, resource_for_key_result(kr))
    _set_published(kr, "key_result", user, "publish")
    return kr


def unpublish_key_result(ctx, user, key_result_id: int) -> KeyResult:
    kr = get_key_result(ctx, user, key_result_id)
    authorize(ctx, user, Action.UNPUBLISH, resource_for_key_result(kr))
    _set_published(kr, "key_result", user, "unpublish")
    return kr


# ═══════════════════════════════════════════════════════════════
# Check-ins
# ═══════════════════════════════════════════════════════════════

def check_in(ctx, user, key_result_id: int, data: dict) -> CheckIn:
    """Record a progress value on a Key Result and roll progress up."""
    check_requested_tenant(ctx, user, Action.CHECK_IN, data)
    kr = get_key_result(ctx, user, key_result_id)
    authorize(ctx, user, Action.CHECK_IN, resource_for_key_result(kr))

    if "value" not in data:
        raise ValidationError("value is required", details={"value": "required"})
    value = _validate_float(data, "value")
    confidence = data.get("confidence")
    if confidence is not None:
        if not isinstance(confidence, int) or isinstance(confidence, bool) or not 1 <= confidence <= 10:
            raise ValidationError("confidence must be an integer 1-10", details={"confidence": "out of range"})

    entry = CheckIn(
        tenant_id=kr.tenant_id,
        key_result_id=kr.id,
        user_id=user.id,
        value=value,
        confidence=confidence,
        note=data.get("note") or "",
    )
    db.session.add(entry)
    old_value = kr.current_value
    kr.current_value = value
    kr.progress = kr_progress(kr)
    _recompute_for_kr(kr)
    db.session.flush()
    write_audit(
        action="key_result.check_in",
        target_type="key_result",
        target_id=kr.id,
        tenant_id=kr.tenant_id,
        actor_user_id=user.id,
        metadata={"check_in_id": entry.id, "value": {"old": old_value, "new": value},
                  "confidence": confidence},
    )
    db.session.commit()
    return entry


def list_check_ins(ctx, user, key_result_id: int) -> list[CheckIn]:
    kr = get_key_result(ctx, user, key_result_id)
    return kr.check_ins.order_by(CheckIn.created_at.desc(), CheckIn.id.desc()).all()


# ═══════════════════════════════════════════════════════════════
# Initiatives
# ═══════════════════════════════════════════════════════════════

def _initiative_resource(ctx, ini: Initiative) -> ResourceContext:
    if ini.key_result_id is not None:
        kr = get_scoped(KeyResult, ini.key_result_id, tenant_id=ini.tenant_id)
        return resource_for_key_result(kr, kind="initiative", owner_id=ini.owner_id)
    obj = get_scoped(Objective, ini.objective_id, tenant_id=ini.tenant_id)
    return resource_for_objective(obj, kind="initiative", owner_id=ini.owner_id)


def get_initiative(ctx, user, initiative_id: int) -> Initiative:
    ini = get_scoped(Initiative, initiative_id, **_scope_kwargs(ctx))
    resource = _initiative_resource(ctx, ini)
    principal = build_principal(ctx, user, workspace_id=resource.workspace_id, team_id=resource.team_id)
    if not can_view(principal, resource):
        raise NotFoundError(resource="Initiative", resource_id=initiative_id)
    return ini


def _add_initiative(user, tenant_id: int, data: dict, parent: dict) -> Initiative:
    title = _validate_title(data, required=True)
    status = _validate_status(data.get("status", "NOT_STARTED"), INITIATIVE_STATUSES)
    ini = Initiative(
        tenant_id=tenant_id,
        title=title,
        status=status,
        owner_id=_resolve_owner(tenant_id, data.get("owner_id"), user.id),
        **parent,
    )
    db.session.add(ini)
    db.session.flush()
    write_audit(
        action="initiative.create",
        target_type="initiative",
        target_id=ini.id,
        tenant_id=tenant_id,
        actor_user_id=user.id,
        metadata={**parent, "title": title},
    )
    db.session.commit()
    return ini


def create_initiative(ctx, user, key_result_id: int, data: dict) -> Initiative:
    check_requested_tenant(ctx, user, Action.CREATE, data)
    kr = get_key_result(ctx, user, key_result_id)
    # The creator becomes the owner; lock and visibility come from the KR.
    authorize(ctx, user, Action.EDIT, resource_for_key_result(kr, kind="initiative", owner_id=user.id))
    return _add_initiative(user, kr.tenant_id, data, {"key_result_id": kr.id})


def create_objective_initiative(ctx, user, objective_id: int, data: dict) -> Initiative:
    """Initiative attached directly to an objective (no Key Result)."""
    check_requested_tenant(ctx, user, Action.CREATE, data)
    obj = get_objective(ctx, user, objective_id)
    authorize(ctx, user, Action.EDIT, resource_for_objective(obj, kind="initiative", owner_id=user.id))
    return _add_initiative(user, obj.tenant_id, data, {"objective_id": obj.id})


def update_initiative(ctx, user, initiative_id: int, data: dict) -> Initiative:
    check_requested_tenant(ctx, user, Action.EDIT, data)
    ini = get_initiative(ctx, user, initiative_id)
    authorize(ctx, user, Action.EDIT, _initiative_resource(ctx, ini))

    changes = {}
    title = _validate_title(data, required=False)
    if title is not None:
        changes["title"] = title
    if "status" in data:
        changes["status"] = _validate_status(data["status"], INITIATIVE_STATUSES)
    if "owner_id" in data:
        changes["owner_id"] = _resolve_owner(ini.tenant_id, data["owner_id"], ini.owner_id)

    diff = _apply_changes(ini, changes)
    if diff:
        write_audit(
            action="initiative.update",
            target_type="initiative",
            target_id=ini.id,
            tenant_id=ini.tenant_id,
            actor_user_id=user.id,
            metadata={"changes": diff},
        )
    db.session.commit()
    return ini


def delete_initiative(ctx, user, initiative_id: int) -> None:
    ini = get_initiative(ctx, user, initiative_id)
    authorize(ctx, user, Action.DELETE, _initiative_resource(ctx, ini))
    snapshot = ini.to_dict()
    db.session.delete(ini)
    write_audit(
        action="initiative.delete",
        target_type="initiative",
        target_id=initiative_id,
        tenant_id=snapshot["tenant_id"],
        actor_user_id=user.id,
        metadata={"snapshot": snapshot},
    )
    db.session.commit()
