from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class LeaveType(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """A named leave category such as Sick or Casual."""

    __tablename__ = "leave_type"
    __table_args__ = (
        sa.UniqueConstraint("name", name="uq_leave_type_name"),
        sa.CheckConstraint("default_days >= 0", name="ck_leave_type_default_days"),
    )

    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    default_days: int = Field(default=0)
    is_paid: bool = Field(default=True)
    is_active: bool = Field(default=True, index=True)
