# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from leave_ledger.models.enums import ReservationStatus


class BalanceResponse(BaseModel):
    """Ledger balance for one (employee, leave type, year)."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    policy_id: uuid.UUID
    year: int
    total_days: int
    used_days: int
    reserved_days: int
    remaining_days: int
    # Days that can still be requested: total - used - reserved.
    available_days: int
    carried_forward_days: int
    version: int
    updated_at: datetime


class BalanceListResponse(BaseModel):
    items: list[BalanceResponse]
    total: int


class ReservationResponse(BaseModel):
    """A reservation token and its settlement state."""

    id: uuid.UUID
    balance_id: uuid.UUID
    days: int
    status: ReservationStatus
    created_at: datetime
    settled_at: datetime | None
