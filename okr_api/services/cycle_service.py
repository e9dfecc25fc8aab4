"""
Cycle Service — OKR periods and their lifecycle.

    DRAFT ──activate──► ACTIVE ──lock──► LOCKED
                          │                │
                          └────archive─────┴──► ARCHIVED

Transitions are forward-only. Moving a cycle to LOCKED (or ARCHIVED) puts
every Objective / Key Result in it under the cycle lock; see
services/publish_lock.py.
"""

import logging
from datetime import date

from okr_api.core.exceptions import ConflictError, ValidationError
from okr_api.models import db
from okr_api.models.audit import write_audit
from okr_api.models.okr import Cycle
from okr_api.services.authorisation import Action
from okr_api.services.helpers.guards import authorize_tenant_admin, check_requested_tenant
from okr_api.services.helpers.scoped_queries import get_scoped
from okr_api.services.publish_lock import CYCLE_TRANSITIONS, TransitionError, validate_cycle_transition

logger = logging.getLogger(__name__)


def _parse_date(data: dict, field: str) -> date:
    raw = data.get(field)
    if not raw:
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date", details={field: "invalid"}) from None


def list_cycles(tenant_id: int) -> list[Cycle]:
    return Cycle.query_for_tenant(tenant_id).order_by(Cycle.start_date, Cycle.id).all()


def get_cycle(tenant_id: int, cycle_id: int) -> Cycle:
    return get_scoped(Cycle, cycle_id, tenant_id=tenant_id)


def create_cycle(ctx, user, data: dict) -> Cycle:
    check_requested_tenant(ctx, user, Action.MANAGE_CYCLES, data)
    authorize_tenant_admin(ctx, user, Action.MANAGE_CYCLES)

    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    start, end = _parse_date(data, "start_date"), _parse_date(data, "end_date")
    if start >= end:
        raise ValidationError("start_date must be before end_date", details={"end_date": "before start"})
    if Cycle.query_for_tenant(ctx.tenant_id).filter_by(name=name).first():
        raise ConflictError("Cycle", "name", name)

    cycle = Cycle(tenant_id=ctx.tenant_id, name=name, start_date=start, end_date=end, status="DRAFT")
    db.session.add(cycle)
    db.session.flush()
    write_audit(
        action="cycle.create",
        target_type="cycle",
        target_id=cycle.id,
        tenant_id=ctx.tenant_id,
        actor_user_id=user.id,
        metadata={"name": name, "start_date": start.isoformat(), "end_date": end.isoformat()},
    )
    db.session.commit()
    return cycle


def update_cycle(ctx, user, cycle_id: int, data: dict) -> Cycle:
    """Rename or re-date a cycle. Status only changes through ``transition_cycle``."""
    check_requested_tenant(ctx, user, Action.MANAGE_CYCLES, data)
    authorize_tenant_admin(ctx, user, Action.MANAGE_CYCLES)
    cycle = get_cycle(ctx.tenant_id, cycle_id)
    if cycle.status == "ARCHIVED":
        raise ConflictError("Cycle", "status", cycle.status, message="Archived cycles cannot be edited.")

    changes = {}
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        clash = Cycle.query_for_tenant(ctx.tenant_id).filter(Cycle.name == name, Cycle.id != cycle.id).first()
        if clash is not None:
            raise ConflictError("Cycle", "name", name)
        changes["name"] = name
    start = _parse_date(data, "start_date") if "start_date" in data else cycle.start_date
    end = _parse_date(data, "end_date") if "end_date" in data else cycle.end_date
    if start >= end:
        raise ValidationError("start_date must be before end_date", details={"end_date": "before start"})
    changes["start_date"], changes["end_date"] = start, end

    diff = {}
    for field, new in changes.items():
        old = getattr(cycle, field)
        if old != new:
            setattr(cycle, field, new)
            diff[field] = {"old": str(old), "new": str(new)}
    if diff:
        write_audit(
            action="cycle.update",
            target_type="cycle",
            target_id=cycle.id,
            tenant_id=cycle.tenant_id,
            actor_user_id=user.id,
            metadata={"changes": diff},
        )
    db.session.commit()
    return cycle


def transition_cycle(ctx, user, cycle_id: int, action: str) -> Cycle:
    """Apply one lifecycle action (activate / lock / archive).

    Raises:
        ValidationError: unknown action.
        TransitionError: action not allowed from the current status.
    """
    if action not in CYCLE_TRANSITIONS:
        raise ValidationError(
            f"Unknown cycle action '{action}'",
            details={"action": f"one of {', '.join(CYCLE_TRANSITIONS)}"},
        )
    authorize_tenant_admin(ctx, user, Action.MANAGE_CYCLES)
    cycle = get_cycle(ctx.tenant_id, cycle_id)

    check = validate_cycle_transition(cycle.status, action)
    if not check["valid"]:
        raise TransitionError("cycle", action, cycle.status, check["reason"])

    cycle.status = check["to"]
    write_audit(
        action=f"cycle.{action}",
        target_type="cycle",
        target_id=cycle.id,
        tenant_id=cycle.tenant_id,
        actor_user_id=user.id,
        metadata={"status": {"old": check["from"], "new": check["to"]}},
    )
    db.session.commit()
    logger.info("Cycle %s %s → %s by user %s", cycle.id, check["from"], check["to"], user.id)
    return cycle
