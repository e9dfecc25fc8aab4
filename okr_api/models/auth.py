"""
Auth Models — tenants, users, workspaces, teams, role assignments.

A Tenant (called "organization" by older clients) is the isolation root.
Workspaces and Teams nest under it and are the narrower scopes a
RoleAssignment can target:

    TENANT ──┬── WORKSPACE ──┬── TEAM
             │               └── TEAM
             └── WORKSPACE

Platform superusers have no home tenant (``tenant_id IS NULL``).
"""

from datetime import datetime, timezone

from okr_api.models import db
from okr_api.models.base import TenantModel


# ═══════════════════════════════════════════════════════════════
# 1. TENANTS
# ═══════════════════════════════════════════════════════════════
class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    allow_tenant_admin_exec_visibility = db.Column(db.Boolean, default=False, nullable=False)
    exec_only_whitelist = db.Column(db.JSON, default=list)
    settings = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    users = db.relationship("User", back_populates="tenant", lazy="dynamic")

    def whitelist_ids(self) -> list[int]:
        return [int(u) for u in (self.exec_only_whitelist or [])]

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "allow_tenant_admin_exec_visibility": bool(self.allow_tenant_admin_exec_visibility),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True
    )
    email = db.Column(db.String(200), nullable=False)
    full_name = db.Column(db.String(200))
    status = db.Column(db.String(20), default="active")  # active, invited, suspended
    is_superuser = db.Column(db.Boolean, default=False, nullable=False)
    manager_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    settings = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
        db.Index("ix_users_tenant_id", "tenant_id"),
    )

    tenant = db.relationship("Tenant", back_populates="users")
    role_assignments = db.relationship(
        "RoleAssignment", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="RoleAssignment.user_id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "email": self.email,
            "full_name": self.full_name,
            "status": self.status,
            "is_superuser": bool(self.is_superuser),
            "manager_id": self.manager_id,
        }


# ═══════════════════════════════════════════════════════════════
# 3. WORKSPACES / TEAMS
# ═══════════════════════════════════════════════════════════════
class Workspace(TenantModel):
    __tablename__ = "workspaces"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    teams = db.relationship("Team", back_populates="workspace", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "tenant_id": self.tenant_id, "name": self.name}


class Team(TenantModel):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    workspace = db.relationship("Workspace", back_populates="teams")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "workspace_id": self.workspace_id,
            "name": self.name,
        }


# ═══════════════════════════════════════════════════════════════
# 4. ROLE ASSIGNMENTS
# ═══════════════════════════════════════════════════════════════
class RoleAssignment(TenantModel):
    """One (user, role, scope) grant. A user may hold many at once."""

    __tablename__ = "role_assignments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = db.Column(db.String(40), nullable=False)
    scope_type = db.Column(db.String(20), nullable=False)  # TENANT, WORKSPACE, TEAM
    scope_id = db.Column(db.Integer, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "role", "scope_type", "scope_id", name="uq_role_assignment",
        ),
        db.Index("ix_role_assignments_scope", "scope_type", "scope_id"),
    )

    user = db.relationship("User", back_populates="role_assignments", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "role": self.role,
            "scope_type": self.scope_type,
            "scope_id": self.scope_id,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<RoleAssignment user={self.user_id} {self.role}@{self.scope_type}:{self.scope_id}>"
