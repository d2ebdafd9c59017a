# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AuthDep, ensure_self_or_admin
from leave_ledger.db import SessionDep
from leave_ledger.schemas.balance import BalanceListResponse, BalanceResponse, ReservationResponse
from leave_ledger.services import ledger as ledger_service

employee_balance_router = APIRouter(
    prefix="/employees/{employee_id}/balances",
    tags=["balances"],
)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def list_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None),
) -> BalanceListResponse:
    """List an employee's leave balances, optionally for one year."""
    ensure_self_or_admin(auth, employee_id)
    return await ledger_service.list_balances(session, employee_id, year)


@employee_balance_router.get("/{leave_type_id}/{year}", response_model=BalanceResponse)
async def get_employee_balance(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    session: SessionDep,
    auth: AuthDep,
) -> BalanceResponse:
    ensure_self_or_admin(auth, employee_id)
    return await ledger_service.get_balance(session, employee_id, leave_type_id, year)


@employee_balance_router.get("/{leave_type_id}/{year}/reservations", response_model=list[ReservationResponse])
async def list_balance_reservations(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    session: SessionDep,
    auth: AuthDep,
) -> list[ReservationResponse]:
    """List the reservation tokens held against one balance."""
    ensure_self_or_admin(auth, employee_id)
    balance = await ledger_service.get_balance(session, employee_id, leave_type_id, year)
    return await ledger_service.list_reservations(session, balance.id)
