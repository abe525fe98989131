"""initial schema: users, roles, leave requests, approvals, balances, attendance, audit log

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("hierarchy_level", sa.Integer(), nullable=False),
        sa.UniqueConstraint("hierarchy_level", name="uq_role_hierarchy_level"),
        sa.CheckConstraint("hierarchy_level >= 0", name="ck_role_hierarchy_level_non_negative"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role_id", sa.Uuid(), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("manager_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role_id", "users", ["role_id"], unique=False)

    op.create_table(
        "credentials",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("salt", sa.String(length=64), nullable=False),
        _timestamp("modified_at"),
        _timestamp("created_at"),
    )

    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("result", sa.String(length=20), nullable=False),
        _timestamp("attempted_at"),
    )
    op.create_index(
        "ix_login_attempt_user_result_time", "login_attempts", ["user_id", "result", "attempted_at"], unique=False
    )

    op.create_table(
        "leave_balances",
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("accumulated_holidays", sa.Float(), server_default="0", nullable=False),
        sa.Column("accumulated_permits", sa.Float(), server_default="0", nullable=False),
        _timestamp("modified_at"),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.CheckConstraint("accumulated_holidays >= 0", name="ck_balance_holidays_non_negative"),
        sa.CheckConstraint("accumulated_permits >= 0", name="ck_balance_permits_non_negative"),
    )

    op.create_table(
        "requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("request_type", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("start_date <= end_date", name="ck_request_date_order"),
    )
    op.create_index("ix_requests_user_id", "requests", ["user_id"], unique=False)
    op.create_index("ix_request_user_dates", "requests", ["user_id", "start_date", "end_date"], unique=False)

    op.create_table(
        "approvals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("request_id", sa.Uuid(), sa.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("approver_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("comment", sa.String(), nullable=True),
        _timestamp("decided_at"),
        sa.UniqueConstraint("request_id", "approver_id", name="uq_approval_request_approver"),
    )
    op.create_index("ix_approvals_request_id", "approvals", ["request_id"], unique=False)
    op.create_index("ix_approvals_approver_id", "approvals", ["approver_id"], unique=False)
    op.create_index("ix_approvals_status", "approvals", ["status"], unique=False)

    op.create_table(
        "attendance_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action", sa.String(length=10), nullable=False),
        sa.Column("location", sa.String(length=20), nullable=False),
        sa.Column("geolocation", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_attendance_user_time", "attendance_events", ["user_id", "occurred_at"], unique=False)

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"], unique=False)
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"], unique=False)
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"], unique=False)


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("attendance_events")
    op.drop_table("approvals")
    op.drop_table("requests")
    op.drop_table("leave_balances")
    op.drop_table("login_attempts")
    op.drop_table("credentials")
    op.drop_table("users")
    op.drop_table("roles")
