# ruff: noqa: TC003
"""Port to the external payroll collaborator for leave encashment payouts."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EncashmentPayout(BaseModel):
    """Money owed to an employee for unused leave converted at year end."""

    rollover_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    days: int
    rate: Decimal
    amount: Decimal


@runtime_checkable
class PayrollGateway(Protocol):
    """Interface for the payroll collaborator."""

    async def record_encashment(self, payout: EncashmentPayout) -> None:
        """Queue an encashment payout for the next payroll run."""
        ...


class InMemoryPayrollGateway:
    """In-memory stub implementation for development and tests."""

    def __init__(self) -> None:
        self.payouts: list[EncashmentPayout] = []

    async def record_encashment(self, payout: EncashmentPayout) -> None:
        """Record the payout."""
        self.payouts.append(payout)


_payroll_gateway: PayrollGateway = InMemoryPayrollGateway()


def get_payroll_gateway() -> PayrollGateway:
    """Return the active payroll gateway."""
    return _payroll_gateway


def set_payroll_gateway(gateway: PayrollGateway) -> None:
    """Override the gateway (for testing or production wiring)."""
    global _payroll_gateway
    _payroll_gateway = gateway
