# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.enums import ApplicationStatus


class LeaveApplication(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """An employee's leave request with its approval workflow state."""

    __tablename__ = "leave_application"
    __table_args__ = (
        sa.Index("ix_application_employee_status", "employee_id", "status"),
        sa.CheckConstraint("end_date >= start_date", name="ck_application_date_order"),
        sa.CheckConstraint("requested_days > 0", name="ck_application_requested_days"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    policy_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_policy.id"), nullable=False),
    )
    start_date: date
    end_date: date
    requested_days: int
    reason: str = Field(max_length=2000)
    status: str = Field(
        default=ApplicationStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    current_approval_level: int = 1
    # Required role per level, frozen from the policy at submission.
    approval_chain: list[str] = Field(sa_type=sa.JSON)
    reservation_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_reservation.id"), nullable=False, unique=True),
    )
    rejection_reason: str | None = Field(default=None, max_length=2000)
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class ApprovalTrailEntry(UUIDBase, TimestampMixin, table=True):
    """One approver's decision on an application, in chain order."""

    __tablename__ = "leave_approval_trail"
    __table_args__ = (sa.UniqueConstraint("application_id", "level", name="uq_trail_application_level"),)

    application_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_application.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    level: int
    approver_id: uuid.UUID
    approver_role: str = Field(max_length=100)
    decision: str = Field(max_length=20)
    comment: str | None = Field(default=None, max_length=2000)
