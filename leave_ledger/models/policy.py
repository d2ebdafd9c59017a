# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class LeavePolicy(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Binds leave types to entitlement rules and an approval hierarchy."""

    __tablename__ = "leave_policy"
    __table_args__ = (sa.UniqueConstraint("name", name="uq_leave_policy_name"),)

    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    notify_on_apply: bool = True
    notify_on_approve: bool = True
    notify_on_reject: bool = True
    notify_on_cancel: bool = True
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})


class PolicyLeaveTypeRule(UUIDBase, table=True):
    """Numeric entitlement rules for one leave type within a policy."""

    __tablename__ = "policy_leave_type_rule"
    __table_args__ = (
        sa.UniqueConstraint("policy_id", "leave_type_id", name="uq_rule_policy_leave_type"),
        sa.CheckConstraint("max_carry_forward_days <= max_days", name="ck_rule_carry_forward_cap"),
        sa.CheckConstraint("max_encashment_days <= max_days", name="ck_rule_encashment_cap"),
        sa.CheckConstraint("encashment_rate > 0", name="ck_rule_encashment_rate"),
    )

    policy_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_policy.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    max_days: int
    carry_forward: bool = False
    max_carry_forward_days: int = 0
    encashment_eligible: bool = False
    max_encashment_days: int = 0
    encashment_rate: Decimal = Field(default=Decimal("1"), sa_type=sa.Numeric(12, 2))


class PolicyApprovalLevel(UUIDBase, table=True):
    """One step of a policy's ordered approval hierarchy."""

    __tablename__ = "policy_approval_level"
    __table_args__ = (
        sa.UniqueConstraint("policy_id", "level", name="uq_approval_level_policy_level"),
        sa.CheckConstraint("level >= 1", name="ck_approval_level_positive"),
    )

    policy_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_policy.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    level: int
    required_role: str = Field(max_length=100)
