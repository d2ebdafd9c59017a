# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase


class LeaveRollover(UUIDBase, TimestampMixin, table=True):
    """Outcome of closing one balance at year end."""

    __tablename__ = "leave_rollover"
    __table_args__ = (sa.UniqueConstraint("balance_id", name="uq_rollover_balance"),)

    balance_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_balance.id"), nullable=False),
    )
    next_balance_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_balance.id"), nullable=False),
    )
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID
    from_year: int = Field(index=True)
    remaining_days: int
    carried_forward_days: int
    encashed_days: int
    forfeited_days: int
    encashment_amount: Decimal = Field(default=Decimal("0"), sa_type=sa.Numeric(12, 2))
