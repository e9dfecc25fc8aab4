"""okr_rbac_initial

Initial schema: tenants, users, workspaces, teams, role assignments, OKR
content (cycles, objectives, key results, initiatives, check-ins, access
grants) and the append-only audit log.

Revision ID: a1c0f3e2b801
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "a1c0f3e2b801"
down_revision = None
branch_labels = None
depends_on = None


def _tenant_fk():
    return sa.Column(
        "tenant_id", sa.Integer(),
        sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )


def _user_fk(name, nullable=True, ondelete="SET NULL"):
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def _content_columns():
    return [
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="ON_TRACK"),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("visibility_level", sa.String(30), nullable=False, server_default="PUBLIC_TENANT"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        _user_fk("owner_id"),
        sa.Column("workspace_id", sa.Integer(), sa.ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True),
        sa.Column("cycle_id", sa.Integer(), sa.ForeignKey("cycles.id", ondelete="SET NULL"), nullable=True),
        _user_fk("published_by"),
    ]


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("allow_tenant_admin_exec_visibility", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("exec_only_whitelist", sa.JSON(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True),
        sa.Column("email", sa.String(200), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("is_superuser", sa.Boolean(), nullable=False, server_default=sa.false()),
        _user_fk("manager_id"),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])

    op.create_table(
        "workspaces",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_workspaces_tenant_id", "workspaces", ["tenant_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        sa.Column("workspace_id", sa.Integer(), sa.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_teams_tenant_id", "teams", ["tenant_id"])
    op.create_index("ix_teams_workspace_id", "teams", ["workspace_id"])

    op.create_table(
        "role_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        sa.Column("role", sa.String(40), nullable=False),
        sa.Column("scope_type", sa.String(20), nullable=False),
        sa.Column("scope_id", sa.Integer(), nullable=False),
        _user_fk("created_by"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_id", "role", "scope_type", "scope_id", name="uq_role_assignment"),
    )
    op.create_index("ix_role_assignments_tenant_id", "role_assignments", ["tenant_id"])
    op.create_index("ix_role_assignments_user_id", "role_assignments", ["user_id"])
    op.create_index("ix_role_assignments_scope", "role_assignments", ["scope_type", "scope_id"])

    op.create_table(
        "cycles",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "name", name="uq_cycle_tenant_name"),
    )
    op.create_index("ix_cycles_tenant_id", "cycles", ["tenant_id"])

    op.create_table(
        "objectives",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        *_content_columns(),
    )
    op.create_index("ix_objectives_tenant_id", "objectives", ["tenant_id"])
    op.create_index("ix_objectives_owner_id", "objectives", ["owner_id"])
    op.create_index("ix_objectives_cycle_id", "objectives", ["cycle_id"])

    op.create_table(
        "key_results",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        *_content_columns(),
        sa.Column("start_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("target_value", sa.Float(), nullable=False, server_default="100"),
        sa.Column("current_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("unit", sa.String(30), nullable=True),
    )
    op.create_index("ix_key_results_tenant_id", "key_results", ["tenant_id"])
    op.create_index("ix_key_results_owner_id", "key_results", ["owner_id"])
    op.create_index("ix_key_results_cycle_id", "key_results", ["cycle_id"])

    op.create_table(
        "objective_key_results",
        sa.Column("objective_id", sa.Integer(), sa.ForeignKey("objectives.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("key_result_id", sa.Integer(), sa.ForeignKey("key_results.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("weight", sa.Float(), nullable=False, server_default="1"),
    )

    op.create_table(
        "initiatives",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="NOT_STARTED"),
        _user_fk("owner_id"),
        sa.Column("key_result_id", sa.Integer(), sa.ForeignKey("key_results.id"), nullable=True),
        sa.Column("objective_id", sa.Integer(), sa.ForeignKey("objectives.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_initiatives_tenant_id", "initiatives", ["tenant_id"])
    op.create_index("ix_initiatives_key_result_id", "initiatives", ["key_result_id"])
    op.create_index("ix_initiatives_objective_id", "initiatives", ["objective_id"])

    op.create_table(
        "check_ins",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        sa.Column("key_result_id", sa.Integer(), sa.ForeignKey("key_results.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id"),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_check_ins_tenant_id", "check_ins", ["tenant_id"])
    op.create_index("ix_check_ins_key_result_id", "check_ins", ["key_result_id"])

    op.create_table(
        "okr_access_grants",
        sa.Column("id", sa.Integer(), primary_key=True),
        _tenant_fk(),
        sa.Column("objective_id", sa.Integer(), sa.ForeignKey("objectives.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        _user_fk("granted_by"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("objective_id", "user_id", name="uq_grant_objective_user"),
    )
    op.create_index("ix_okr_access_grants_tenant_id", "okr_access_grants", ["tenant_id"])
    op.create_index("ix_okr_access_grants_objective_id", "okr_access_grants", ["objective_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True),
        _user_fk("actor_user_id"),
        sa.Column("action", sa.String(60), nullable=False),
        sa.Column("target_type", sa.String(30), nullable=False),
        sa.Column("target_id", sa.String(36), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_tenant_id", "audit_logs", ["tenant_id"])
    op.create_index("idx_audit_target", "audit_logs", ["target_type", "target_id"])
    op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
    op.create_index("idx_audit_action", "audit_logs", ["action"])
    op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    for table in (
        "audit_logs", "okr_access_grants", "check_ins", "initiatives",
        "objective_key_results", "key_results", "objectives", "cycles",
        "role_assignments", "teams", "workspaces", "users", "tenants",
    ):
        op.drop_table(table)
