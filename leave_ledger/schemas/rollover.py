# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel


class SkippedKey(BaseModel):
    """A balance the rollover run could not close, with the reason."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    reason: str
    detail: str | None = None


class RolloverOutcome(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    remaining_days: int
    carried_forward_days: int
    encashed_days: int
    forfeited_days: int
    encashment_amount: Decimal
    next_balance_id: uuid.UUID


class RolloverRunResponse(BaseModel):
    year: int
    processed: int
    already_rolled_over: int
    skipped: list[SkippedKey]
    outcomes: list[RolloverOutcome]
    total_encashment_amount: Decimal = Decimal("0")
