"""Initial timesheet portal schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Org users, roles, reporting managers, teams, timesheet entries, weekly
estimates and status workflow, leave ledger and the audit log.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _user_fk(name="user_id", ondelete="CASCADE", **kw):
    return sa.Column(name, UUID(as_uuid=True), sa.ForeignKey("org_users.id", ondelete=ondelete), **kw)


def upgrade():
    # ── IAM ──
    op.create_table(
        "org_users",
        _id(),
        sa.Column("clickup_user_id", sa.String(64), nullable=False, unique=True, index=True),
        sa.Column("email", sa.String(255), nullable=True, index=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("country", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "org_roles",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "role", name="uq_org_roles_user_role"),
    )

    op.create_table(
        "org_reporting_managers",
        _id(),
        _user_fk(nullable=False, unique=True, index=True),
        _user_fk("manager_user_id", nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "teams",
        _id(),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        _user_fk("manager_user_id", ondelete="SET NULL", nullable=True, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "team_members",
        _id(),
        sa.Column("team_id", UUID(as_uuid=True), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True),
        _user_fk(nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── Timesheets ──
    op.create_table(
        "timesheet_entries",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("task_id", sa.String(64), nullable=False),
        sa.Column("task_name", sa.String(500), nullable=True),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("estimate_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("estimate_locked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("tracked_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("tracked_note", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "task_id", "date", name="uq_timesheet_entries_user_task_date"),
    )

    op.create_table(
        "weekly_estimates",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("week_start", sa.Date, nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("locked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("unlocked_by", UUID(as_uuid=True), nullable=True),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "week_start", name="uq_weekly_estimates_user_week"),
    )

    op.create_table(
        "weekly_timesheet_status",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("week_start", sa.Date, nullable=False, index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", UUID(as_uuid=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "week_start", name="uq_weekly_status_user_week"),
    )

    op.create_table(
        "timesheet_approvals",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("week_start", sa.Date, nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("action_by", UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ── Leave ──
    op.create_table(
        "leave_types",
        _id(),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("paid", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "leave_requests",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("leave_type_id", UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING", index=True),
        sa.Column("decided_by", UUID(as_uuid=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "leave_balances",
        _id(),
        _user_fk(nullable=False, index=True),
        sa.Column("leave_type_id", UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("accrued_hours", sa.Numeric(7, 2), nullable=False, server_default="0"),
        sa.Column("used_hours", sa.Numeric(7, 2), nullable=False, server_default="0"),
        sa.Column("balance_hours", sa.Numeric(7, 2), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "leave_type_id", "year", name="uq_leave_balances_user_type_year"),
    )

    op.create_table(
        "holidays",
        _id(),
        sa.Column("date", sa.Date, nullable=False, index=True),
        sa.Column("year", sa.Integer, nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("country", sa.String(20), nullable=False, server_default="BOTH"),
        sa.UniqueConstraint("date", "country", name="uq_holidays_date_country"),
    )

    # ── Audit ──
    op.create_table(
        "audit_log",
        _id(),
        sa.Column("actor_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(100), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("details", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade():
    for table in (
        "audit_log",
        "holidays",
        "leave_balances",
        "leave_requests",
        "leave_types",
        "timesheet_approvals",
        "weekly_timesheet_status",
        "weekly_estimates",
        "timesheet_entries",
        "team_members",
        "teams",
        "org_reporting_managers",
        "org_roles",
        "org_users",
    ):
        op.drop_table(table)
