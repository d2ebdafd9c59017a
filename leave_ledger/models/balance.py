# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.enums import ReservationStatus


class LeaveBalance(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Per (employee, leave type, year) entitlement; the ledger's unit of consistency."""

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_balance_employee_type_year"),
        sa.CheckConstraint(
            "total_days >= 0 AND used_days >= 0 AND reserved_days >= 0",
            name="ck_balance_non_negative",
        ),
        sa.CheckConstraint("used_days + reserved_days <= total_days", name="ck_balance_no_overdraft"),
        sa.CheckConstraint("remaining_days = total_days - used_days", name="ck_balance_remaining"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    policy_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_policy.id"), nullable=False, index=True),
    )
    year: int = Field(index=True)
    total_days: int = 0
    used_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    reserved_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    remaining_days: int = 0
    carried_forward_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})


class LeaveReservation(UUIDBase, TimestampMixin, table=True):
    """Durable reservation token: days held against a balance for one application."""

    __tablename__ = "leave_reservation"
    __table_args__ = (sa.CheckConstraint("days > 0", name="ck_reservation_days_positive"),)

    balance_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_balance.id"), nullable=False, index=True),
    )
    days: int
    status: str = Field(default=ReservationStatus.HELD, max_length=20, index=True)
    settled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
