"""leave ledger schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_HOURS = sa.Numeric(precision=10, scale=2)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "leave_type",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("paid", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("max_per_request_hours", _HOURS, nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("org_id", "code", name="uq_leave_type_org_code"),
    )
    op.create_index("ix_leave_type_org_id", "leave_type", ["org_id"])

    op.create_table(
        "leave_policy",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("accrual_rule", sa.JSON(), nullable=True),
        sa.Column("carry_forward_rule", sa.JSON(), nullable=True),
        sa.Column("max_balance", _HOURS, nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("org_id", "leave_type_id", name="uq_leave_policy_org_type"),
    )
    op.create_index("ix_leave_policy_org_id", "leave_policy", ["org_id"])
    op.create_index("ix_leave_policy_leave_type_id", "leave_policy", ["leave_type_id"])

    op.create_table(
        "leave_balance",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("balance_hours", _HOURS, nullable=False),
        sa.Column("pending_hours", _HOURS, nullable=False),
        sa.Column("booked_hours", _HOURS, nullable=False),
        sa.Column("as_of_date", sa.Date(), nullable=False),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "leave_type_id", name="uq_leave_balance_user_type"),
    )
    op.create_index("ix_leave_balance_user_id", "leave_balance", ["user_id"])
    op.create_index("ix_leave_balance_leave_type_id", "leave_balance", ["leave_type_id"])

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("duration_type", sa.String(length=20), nullable=False),
        sa.Column("half_day_segment", sa.String(length=20), nullable=True),
        sa.Column("hours", _HOURS, nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("state", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("decided_by_user_id", sa.Uuid(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_leave_request_org_id", "leave_request", ["org_id"])
    op.create_index("ix_leave_request_user_id", "leave_request", ["user_id"])
    op.create_index("ix_leave_request_leave_type_id", "leave_request", ["leave_type_id"])
    op.create_index("ix_leave_request_user_state", "leave_request", ["user_id", "state"])
    op.create_index("ix_leave_request_org_start", "leave_request", ["org_id", "start_date"])

    op.create_table(
        "approval",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("subject_type", sa.String(length=50), nullable=False),
        sa.Column("subject_id", sa.Uuid(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("decision", sa.String(length=20), nullable=False),
        sa.Column("comment", sa.String(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("subject_type", "subject_id", name="uq_approval_subject"),
    )
    op.create_index("ix_approval_org_id", "approval", ["org_id"])
    op.create_index("ix_approval_subject_id", "approval", ["subject_id"])
    op.create_index("ix_approval_approver_id", "approval", ["approver_id"])

    op.create_table(
        "comp_off_credit",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("manager_id", sa.Uuid(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("timesheet_id", sa.Uuid(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("duration_type", sa.String(length=20), nullable=False),
        sa.Column("credited_hours", _HOURS, nullable=False),
        sa.Column("timesheet_hours", _HOURS, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_comp_off_credit_org_id", "comp_off_credit", ["org_id"])
    op.create_index("ix_comp_off_credit_user_id", "comp_off_credit", ["user_id"])
    op.create_index("ix_comp_off_credit_status", "comp_off_credit", ["status"])
    op.create_index("ix_comp_off_user_status", "comp_off_credit", ["org_id", "user_id", "status"])
    op.create_index("ix_comp_off_user_work_date", "comp_off_credit", ["user_id", "work_date"])

    op.create_table(
        "org_calendar_day",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_working_day", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.UniqueConstraint("org_id", "date", name="uq_calendar_day_org_date"),
    )
    op.create_index("ix_org_calendar_day_org_id", "org_calendar_day", ["org_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("subject_user_id", sa.Uuid(), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("note", sa.String(length=1000), nullable=True),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_audit_log_org_id", "audit_log", ["org_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_subject", "audit_log", ["org_id", "subject_user_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("org_calendar_day")
    op.drop_table("comp_off_credit")
    op.drop_table("approval")
    op.drop_table("leave_request")
    op.drop_table("leave_balance")
    op.drop_table("leave_policy")
    op.drop_table("leave_type")
