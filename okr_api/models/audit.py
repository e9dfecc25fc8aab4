"""
OKR Platform API
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for every allowed
      mutation and every publish / cycle-lock transition.
"""

import json
from datetime import UTC, datetime

from sqlalchemy import event

from okr_api.models import db


AUDIT_TARGET_TYPES = {
    "objective", "key_result", "initiative", "check_in",
    "cycle", "role_assignment", "tenant", "user",
}


class AuditLog(db.Model):
    """
    Immutable audit trail.

    One row per action. ``metadata_json`` carries old→new snapshots for
    field-level changes and the action-specific payload otherwise.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_target", "target_type", "target_id"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    actor_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="NULL for system entries",
    )
    action = db.Column(
        db.String(60), nullable=False,
        comment="objective.publish | cycle.lock | exec_whitelist.add | …",
    )
    target_type = db.Column(db.String(30), nullable=False)
    target_id = db.Column(
        db.String(36), nullable=False,
        comment="PK of the referenced entity (int-as-string)",
    )
    metadata_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    @property
    def meta(self) -> dict:
        try:
            return json.loads(self.metadata_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actorUserId": self.actor_user_id,
            "action": self.action,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "organizationId": self.tenant_id,
            "metadata": self.meta,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.target_type}/{self.target_id}>"


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise RuntimeError(f"AuditLog rows are append-only (id={target.id})")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise RuntimeError(f"AuditLog rows are append-only (id={target.id})")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    action: str,
    target_type: str,
    target_id,
    tenant_id: int | None,
    actor_user_id: int | None = None,
    metadata: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control: the audit row commits (or rolls back) together
    with the state change it describes.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id),
        metadata_json=json.dumps(metadata or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
