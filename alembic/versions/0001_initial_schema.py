"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "leave_type",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("default_days", sa.Integer(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("name", name="uq_leave_type_name"),
        sa.CheckConstraint("default_days >= 0", name="ck_leave_type_default_days"),
    )
    op.create_index("ix_leave_type_is_active", "leave_type", ["is_active"])

    op.create_table(
        "leave_policy",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("notify_on_apply", sa.Boolean(), nullable=False),
        sa.Column("notify_on_approve", sa.Boolean(), nullable=False),
        sa.Column("notify_on_reject", sa.Boolean(), nullable=False),
        sa.Column("notify_on_cancel", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("name", name="uq_leave_policy_name"),
    )

    op.create_table(
        "policy_leave_type_rule",
        _id(),
        sa.Column("policy_id", sa.Uuid(), sa.ForeignKey("leave_policy.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id"), nullable=False),
        sa.Column("max_days", sa.Integer(), nullable=False),
        sa.Column("carry_forward", sa.Boolean(), nullable=False),
        sa.Column("max_carry_forward_days", sa.Integer(), nullable=False),
        sa.Column("encashment_eligible", sa.Boolean(), nullable=False),
        sa.Column("max_encashment_days", sa.Integer(), nullable=False),
        sa.Column("encashment_rate", sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint("policy_id", "leave_type_id", name="uq_rule_policy_leave_type"),
        sa.CheckConstraint("max_carry_forward_days <= max_days", name="ck_rule_carry_forward_cap"),
        sa.CheckConstraint("max_encashment_days <= max_days", name="ck_rule_encashment_cap"),
        sa.CheckConstraint("encashment_rate > 0", name="ck_rule_encashment_rate"),
    )
    op.create_index("ix_policy_leave_type_rule_policy_id", "policy_leave_type_rule", ["policy_id"])
    op.create_index("ix_policy_leave_type_rule_leave_type_id", "policy_leave_type_rule", ["leave_type_id"])

    op.create_table(
        "policy_approval_level",
        _id(),
        sa.Column("policy_id", sa.Uuid(), sa.ForeignKey("leave_policy.id", ondelete="CASCADE"), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("required_role", sa.String(length=100), nullable=False),
        sa.UniqueConstraint("policy_id", "level", name="uq_approval_level_policy_level"),
        sa.CheckConstraint("level >= 1", name="ck_approval_level_positive"),
    )
    op.create_index("ix_policy_approval_level_policy_id", "policy_approval_level", ["policy_id"])

    op.create_table(
        "leave_balance",
        _id(),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id"), nullable=False),
        sa.Column("policy_id", sa.Uuid(), sa.ForeignKey("leave_policy.id"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column("used_days", sa.Integer(), server_default="0", nullable=False),
        sa.Column("reserved_days", sa.Integer(), server_default="0", nullable=False),
        sa.Column("remaining_days", sa.Integer(), nullable=False),
        sa.Column("carried_forward_days", sa.Integer(), server_default="0", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_balance_employee_type_year"),
        sa.CheckConstraint(
            "total_days >= 0 AND used_days >= 0 AND reserved_days >= 0",
            name="ck_balance_non_negative",
        ),
        sa.CheckConstraint("used_days + reserved_days <= total_days", name="ck_balance_no_overdraft"),
        sa.CheckConstraint("remaining_days = total_days - used_days", name="ck_balance_remaining"),
    )
    op.create_index("ix_leave_balance_employee_id", "leave_balance", ["employee_id"])
    op.create_index("ix_leave_balance_leave_type_id", "leave_balance", ["leave_type_id"])
    op.create_index("ix_leave_balance_policy_id", "leave_balance", ["policy_id"])
    op.create_index("ix_leave_balance_year", "leave_balance", ["year"])

    op.create_table(
        "leave_reservation",
        _id(),
        sa.Column("balance_id", sa.Uuid(), sa.ForeignKey("leave_balance.id"), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("days > 0", name="ck_reservation_days_positive"),
    )
    op.create_index("ix_leave_reservation_balance_id", "leave_reservation", ["balance_id"])
    op.create_index("ix_leave_reservation_status", "leave_reservation", ["status"])

    op.create_table(
        "leave_application",
        _id(),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id"), nullable=False),
        sa.Column("policy_id", sa.Uuid(), sa.ForeignKey("leave_policy.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("requested_days", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=2000), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="PENDING", nullable=False),
        sa.Column("current_approval_level", sa.Integer(), nullable=False),
        sa.Column("approval_chain", sa.JSON(), nullable=False),
        sa.Column("reservation_id", sa.Uuid(), sa.ForeignKey("leave_reservation.id"), nullable=False, unique=True),
        sa.Column("rejection_reason", sa.String(length=2000), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("end_date >= start_date", name="ck_application_date_order"),
        sa.CheckConstraint("requested_days > 0", name="ck_application_requested_days"),
    )
    op.create_index("ix_leave_application_employee_id", "leave_application", ["employee_id"])
    op.create_index("ix_leave_application_leave_type_id", "leave_application", ["leave_type_id"])
    op.create_index("ix_leave_application_status", "leave_application", ["status"])
    op.create_index("ix_application_employee_status", "leave_application", ["employee_id", "status"])

    op.create_table(
        "leave_approval_trail",
        _id(),
        sa.Column(
            "application_id",
            sa.Uuid(),
            sa.ForeignKey("leave_application.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("approver_role", sa.String(length=100), nullable=False),
        sa.Column("decision", sa.String(length=20), nullable=False),
        sa.Column("comment", sa.String(length=2000), nullable=True),
        _created_at(),
        sa.UniqueConstraint("application_id", "level", name="uq_trail_application_level"),
    )
    op.create_index("ix_leave_approval_trail_application_id", "leave_approval_trail", ["application_id"])

    op.create_table(
        "leave_rollover",
        _id(),
        sa.Column("balance_id", sa.Uuid(), sa.ForeignKey("leave_balance.id"), nullable=False),
        sa.Column("next_balance_id", sa.Uuid(), sa.ForeignKey("leave_balance.id"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), nullable=False),
        sa.Column("from_year", sa.Integer(), nullable=False),
        sa.Column("remaining_days", sa.Integer(), nullable=False),
        sa.Column("carried_forward_days", sa.Integer(), nullable=False),
        sa.Column("encashed_days", sa.Integer(), nullable=False),
        sa.Column("forfeited_days", sa.Integer(), nullable=False),
        sa.Column("encashment_amount", sa.Numeric(12, 2), nullable=False),
        _created_at(),
        sa.UniqueConstraint("balance_id", name="uq_rollover_balance"),
    )
    op.create_index("ix_leave_rollover_employee_id", "leave_rollover", ["employee_id"])
    op.create_index("ix_leave_rollover_from_year", "leave_rollover", ["from_year"])

    op.create_table(
        "audit_log",
        _id(),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    for table in (
        "audit_log",
        "leave_rollover",
        "leave_approval_trail",
        "leave_application",
        "leave_reservation",
        "leave_balance",
        "policy_approval_level",
        "policy_leave_type_rule",
        "leave_policy",
        "leave_type",
    ):
        op.drop_table(table)
