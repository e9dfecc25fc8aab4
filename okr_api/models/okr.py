"""
OKR content models.

Models:
    - Cycle: time-boxed OKR period (DRAFT → ACTIVE → LOCKED → ARCHIVED)
    - Objective / KeyResult: content entities gated by the authorisation engine
    - ObjectiveKeyResult: weighted many-to-many link used for progress roll-up
    - Initiative: work item hanging off a Key Result (or an Objective)
    - CheckIn: progress report against a Key Result
    - OkrAccessGrant: explicit per-user access to a PRIVATE objective

Publish lock is NOT stored: it is derived from ``is_published`` plus the
owning cycle's status (see services/publish_lock.py).
"""

from datetime import datetime, timezone

from okr_api.models import db
from okr_api.models.base import TenantModel


CYCLE_STATUSES = ("DRAFT", "ACTIVE", "LOCKED", "ARCHIVED")
OKR_STATUSES = ("ON_TRACK", "AT_RISK", "OFF_TRACK", "COMPLETED", "CANCELLED")


def _iso(value):
    return value.isoformat() if value else None


class Cycle(TenantModel):
    __tablename__ = "cycles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="DRAFT")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_cycle_tenant_name"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "status": self.status,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
        }


class _OkrContentMixin:
    """Columns shared by Objective and KeyResult."""

    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="ON_TRACK")
    progress = db.Column(db.Float, nullable=False, default=0.0)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    published_at = db.Column(db.DateTime, nullable=True)
    visibility_level = db.Column(db.String(30), nullable=False, default="PUBLIC_TENANT")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def _content_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "description": self.description or "",
            "status": self.status,
            "progress": round(self.progress or 0.0, 2),
            "owner_id": self.owner_id,
            "workspace_id": self.workspace_id,
            "team_id": self.team_id,
            "cycle_id": self.cycle_id,
            "is_published": bool(self.is_published),
            "published_at": _iso(self.published_at),
            "published_by": self.published_by,
            "visibility_level": self.visibility_level,
            "updated_at": _iso(self.updated_at),
        }


class Objective(_OkrContentMixin, TenantModel):
    __tablename__ = "objectives"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    workspace_id = db.Column(db.Integer, db.ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("cycles.id", ondelete="SET NULL"), nullable=True, index=True)
    published_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    cycle = db.relationship("Cycle")
    kr_links = db.relationship(
        "ObjectiveKeyResult", back_populates="objective", cascade="all, delete-orphan",
    )
    grants = db.relationship(
        "OkrAccessGrant", back_populates="objective", cascade="all, delete-orphan",
    )

    def to_dict(self, key_result_links=None):
        """``key_result_links``: the already visibility-filtered links to embed."""
        d = self._content_dict()
        if key_result_links is not None:
            d["key_results"] = [
                {**link.key_result.to_dict(), "weight": link.weight} for link in key_result_links
            ]
        return d


class KeyResult(_OkrContentMixin, TenantModel):
    __tablename__ = "key_results"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    workspace_id = db.Column(db.Integer, db.ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("cycles.id", ondelete="SET NULL"), nullable=True, index=True)
    published_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    start_value = db.Column(db.Float, nullable=False, default=0.0)
    target_value = db.Column(db.Float, nullable=False, default=100.0)
    current_value = db.Column(db.Float, nullable=False, default=0.0)
    unit = db.Column(db.String(30), default="")

    cycle = db.relationship("Cycle")
    objective_links = db.relationship(
        "ObjectiveKeyResult", back_populates="key_result", cascade="all, delete-orphan",
    )
    initiatives = db.relationship("Initiative", back_populates="key_result", lazy="dynamic")
    check_ins = db.relationship(
        "CheckIn", back_populates="key_result", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def effective_cycle(self):
        """Own cycle, else the cycle of the first linked objective."""
        if self.cycle is not None:
            return self.cycle
        for link in self.objective_links:
            if link.objective is not None and link.objective.cycle is not None:
                return link.objective.cycle
        return None

    def to_dict(self):
        d = self._content_dict()
        d.update({
            "start_value": self.start_value,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "unit": self.unit or "",
            "objective_ids": [link.objective_id for link in self.objective_links],
        })
        return d


class ObjectiveKeyResult(db.Model):
    __tablename__ = "objective_key_results"

    objective_id = db.Column(
        db.Integer, db.ForeignKey("objectives.id", ondelete="CASCADE"), primary_key=True,
    )
    key_result_id = db.Column(
        db.Integer, db.ForeignKey("key_results.id", ondelete="CASCADE"), primary_key=True,
    )
    weight = db.Column(db.Float, nullable=False, default=1.0)

    objective = db.relationship("Objective", back_populates="kr_links")
    key_result = db.relationship("KeyResult", back_populates="objective_links")


class Initiative(TenantModel):
    __tablename__ = "initiatives"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="NOT_STARTED")
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    key_result_id = db.Column(db.Integer, db.ForeignKey("key_results.id"), nullable=True, index=True)
    objective_id = db.Column(db.Integer, db.ForeignKey("objectives.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    key_result = db.relationship("KeyResult", back_populates="initiatives")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "status": self.status,
            "owner_id": self.owner_id,
            "key_result_id": self.key_result_id,
            "objective_id": self.objective_id,
        }


class CheckIn(TenantModel):
    __tablename__ = "check_ins"

    id = db.Column(db.Integer, primary_key=True)
    key_result_id = db.Column(
        db.Integer, db.ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    value = db.Column(db.Float, nullable=False)
    confidence = db.Column(db.Integer, nullable=True)
    note = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    key_result = db.relationship("KeyResult", back_populates="check_ins")

    def to_dict(self):
        return {
            "id": self.id,
            "key_result_id": self.key_result_id,
            "user_id": self.user_id,
            "value": self.value,
            "confidence": self.confidence,
            "note": self.note or "",
            "created_at": _iso(self.created_at),
        }


class OkrAccessGrant(TenantModel):
    __tablename__ = "okr_access_grants"

    id = db.Column(db.Integer, primary_key=True)
    objective_id = db.Column(
        db.Integer, db.ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    granted_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("objective_id", "user_id", name="uq_grant_objective_user"),
    )

    objective = db.relationship("Objective", back_populates="grants")

    def to_dict(self):
        return {
            "id": self.id,
            "objective_id": self.objective_id,
            "user_id": self.user_id,
            "granted_by": self.granted_by,
        }
