# ruff: noqa: TC003
"""Leave balance ledger.

Balances are mutated only through reserve, commit and release. Each mutation
is a single conditional UPDATE whose WHERE clause carries the guard
(``used + reserved + days <= total`` for reserve, token still HELD for
settlement), so the database never observes an overdraft even with writers
in several processes. Within one process, operations on the same
(employee, leave type, year) key are additionally serialized by an
``asyncio.Lock`` held until the caller commits; different keys never share a
lock.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.exceptions import InsufficientBalance, InvalidInput, InvalidState, NotFound
from leave_ledger.models.balance import LeaveBalance, LeaveReservation
from leave_ledger.models.enums import AuditAction, AuditEntityType, ReservationStatus
from leave_ledger.schemas.balance import BalanceListResponse, BalanceResponse, ReservationResponse
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.policy import get_policy_or_404, get_rule_for, get_rules

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.policy import LeavePolicy
    from leave_ledger.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

BalanceKey = tuple[uuid.UUID, uuid.UUID, int]

_key_locks: weakref.WeakValueDictionary[BalanceKey, asyncio.Lock] = weakref.WeakValueDictionary()


@asynccontextmanager
async def ledger_lock(employee_id: uuid.UUID, leave_type_id: uuid.UUID, year: int) -> AsyncIterator[None]:
    """Serialize ledger work on one balance key within this process."""
    key = (employee_id, leave_type_id, year)
    lock = _key_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _key_locks[key] = lock
    async with lock:
        yield


_employee_locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()


@asynccontextmanager
async def employee_lock(employee_id: uuid.UUID) -> AsyncIterator[None]:
    """Serialize submissions of one employee across all leave types and years."""
    lock = _employee_locks.get(employee_id)
    if lock is None:
        lock = asyncio.Lock()
        _employee_locks[employee_id] = lock
    async with lock:
        yield


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    return BalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        policy_id=balance.policy_id,
        year=balance.year,
        total_days=balance.total_days,
        used_days=balance.used_days,
        reserved_days=balance.reserved_days,
        remaining_days=balance.remaining_days,
        available_days=balance.total_days - balance.used_days - balance.reserved_days,
        carried_forward_days=balance.carried_forward_days,
        version=balance.version,
        updated_at=balance.updated_at,
    )


def _build_reservation_response(reservation: LeaveReservation) -> ReservationResponse:
    return ReservationResponse(
        id=reservation.id,
        balance_id=reservation.balance_id,
        days=reservation.days,
        status=ReservationStatus(reservation.status),
        created_at=reservation.created_at,
        settled_at=reservation.settled_at,
    )


async def _find_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance | None:
    result = await session.execute(
        select(LeaveBalance).where(
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.leave_type_id) == leave_type_id,
            col(LeaveBalance.year) == year,
        )
    )
    return result.scalar_one_or_none()


async def _get_balance_or_404(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    balance = await _find_balance(session, employee_id, leave_type_id, year)
    if balance is None:
        raise NotFound(f"No {year} balance for this employee and leave type")
    return balance


async def _get_reservation_or_404(session: AsyncSession, reservation_id: uuid.UUID) -> LeaveReservation:
    result = await session.execute(select(LeaveReservation).where(col(LeaveReservation.id) == reservation_id))
    reservation = result.scalar_one_or_none()
    if reservation is None:
        raise NotFound("Reservation not found")
    return reservation


async def _get_balance_by_id(session: AsyncSession, balance_id: uuid.UUID) -> LeaveBalance:
    result = await session.execute(select(LeaveBalance).where(col(LeaveBalance.id) == balance_id))
    return result.scalar_one()


async def _reserve_days(session: AsyncSession, balance: LeaveBalance, days: int) -> LeaveReservation:
    """Hold ``days`` against ``balance`` within the caller's transaction.

    The caller must hold ``ledger_lock`` for the balance key and commit.
    Raises InsufficientBalance without touching the balance if the hold
    would overdraw it.
    """
    if days <= 0:
        raise InvalidInput("Reserved days must be positive")

    result = await session.execute(
        update(LeaveBalance)
        .where(
            col(LeaveBalance.id) == balance.id,
            col(LeaveBalance.used_days) + col(LeaveBalance.reserved_days) + days <= col(LeaveBalance.total_days),
        )
        .values(
            reserved_days=col(LeaveBalance.reserved_days) + days,
            version=col(LeaveBalance.version) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.refresh(balance)
        available = balance.total_days - balance.used_days - balance.reserved_days
        raise InsufficientBalance(f"Requested {days} days but only {available} available")

    reservation = LeaveReservation(balance_id=balance.id, days=days, status=ReservationStatus.HELD.value)
    session.add(reservation)
    await session.flush()
    await session.refresh(balance)
    logger.debug("Reserved %d days on balance %s (reservation %s)", days, balance.id, reservation.id)
    return reservation


async def _settle_reservation(
    session: AsyncSession,
    reservation: LeaveReservation,
    outcome: ReservationStatus,
) -> LeaveReservation:
    """Move a HELD reservation to COMMITTED or RELEASED within the caller's transaction.

    Settling a token that already reached ``outcome`` is a no-op returning
    it unchanged. Settling it to the other outcome raises InvalidState.
    The caller must hold ``ledger_lock`` for the balance key and commit.
    """
    if reservation.status == outcome.value:
        return reservation
    if reservation.status != ReservationStatus.HELD.value:
        raise InvalidState(f"Reservation is already {reservation.status}")

    claimed = await session.execute(
        update(LeaveReservation)
        .where(
            col(LeaveReservation.id) == reservation.id,
            col(LeaveReservation.status) == ReservationStatus.HELD.value,
        )
        .values(status=outcome.value, settled_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        # Settled by another process between our read and the claim.
        await session.refresh(reservation)
        if reservation.status == outcome.value:
            return reservation
        raise InvalidState(f"Reservation is already {reservation.status}")

    days = reservation.days
    values: dict[str, object] = {
        "reserved_days": col(LeaveBalance.reserved_days) - days,
        "version": col(LeaveBalance.version) + 1,
    }
    if outcome == ReservationStatus.COMMITTED:
        values["used_days"] = col(LeaveBalance.used_days) + days
        values["remaining_days"] = col(LeaveBalance.total_days) - col(LeaveBalance.used_days) - days

    moved = await session.execute(
        update(LeaveBalance)
        .where(
            col(LeaveBalance.id) == reservation.balance_id,
            col(LeaveBalance.reserved_days) >= days,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if moved.rowcount == 0:
        raise InvalidState(f"Balance {reservation.balance_id} does not hold {days} reserved days")
    await session.flush()
    await session.refresh(reservation)
    logger.debug("Reservation %s %s (%d days)", reservation.id, outcome.value, days)
    return reservation


async def _settle(
    session: AsyncSession,
    reservation_id: uuid.UUID,
    outcome: ReservationStatus,
) -> ReservationResponse:
    reservation = await _get_reservation_or_404(session, reservation_id)
    if reservation.status == outcome.value:
        return _build_reservation_response(reservation)

    balance = await _get_balance_by_id(session, reservation.balance_id)
    async with ledger_lock(balance.employee_id, balance.leave_type_id, balance.year):
        await session.refresh(reservation)
        try:
            reservation = await _settle_reservation(session, reservation, outcome)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return _build_reservation_response(reservation)


# ---------------------------------------------------------------------------
# Public API: atomic ledger operations
# ---------------------------------------------------------------------------


async def ensure_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    policy: LeavePolicy,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    """Return the balance for the key, creating it from the policy rule if absent.

    An existing balance is returned unchanged; its totals are never
    overwritten. Must be called with no other pending changes on ``session``.
    """
    existing = await _find_balance(session, employee_id, leave_type_id, year)
    if existing is not None:
        return existing

    rule = await get_rule_for(session, policy.id, leave_type_id)
    async with ledger_lock(employee_id, leave_type_id, year):
        existing = await _find_balance(session, employee_id, leave_type_id, year)
        if existing is not None:
            return existing

        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            policy_id=policy.id,
            year=year,
            total_days=rule.max_days,
            used_days=0,
            reserved_days=0,
            remaining_days=rule.max_days,
        )
        session.add(balance)
        try:
            await session.flush()
            await write_audit_log(
                session,
                actor_id=employee_id,
                entity_type=AuditEntityType.BALANCE,
                entity_id=balance.id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(balance),
            )
            await session.commit()
        except IntegrityError:
            # Another process created the same key first.
            await session.rollback()
            return await _get_balance_or_404(session, employee_id, leave_type_id, year)

    await session.refresh(balance)
    logger.info(
        "Opened %d balance for employee=%s leave_type=%s total=%d",
        year,
        employee_id,
        leave_type_id,
        balance.total_days,
    )
    return balance


async def reserve(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    days: int,
) -> ReservationResponse:
    """Hold days against a balance, failing fast with InsufficientBalance."""
    async with ledger_lock(employee_id, leave_type_id, year):
        balance = await _get_balance_or_404(session, employee_id, leave_type_id, year)
        try:
            reservation = await _reserve_days(session, balance, days)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return _build_reservation_response(reservation)


async def commit(session: AsyncSession, reservation_id: uuid.UUID) -> ReservationResponse:
    """Convert a reservation into usage. Idempotent."""
    return await _settle(session, reservation_id, ReservationStatus.COMMITTED)


async def release(session: AsyncSession, reservation_id: uuid.UUID) -> ReservationResponse:
    """Return a reservation's days to the balance. Idempotent."""
    return await _settle(session, reservation_id, ReservationStatus.RELEASED)


async def assign_policy(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int,
) -> BalanceListResponse:
    """Open the employee's balances for every leave type the policy covers."""
    policy = await get_policy_or_404(session, policy_id)
    rules = await get_rules(session, policy.id)

    balances = [await ensure_balance(session, employee_id, policy, rule.leave_type_id, year) for rule in rules]
    logger.info(
        "Assigned policy %s to employee=%s for %d by %s (%d balances)",
        policy.id,
        employee_id,
        year,
        auth.user_id,
        len(balances),
    )
    return BalanceListResponse(items=[_build_balance_response(b) for b in balances], total=len(balances))


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> BalanceResponse:
    balance = await _get_balance_or_404(session, employee_id, leave_type_id, year)
    return _build_balance_response(balance)


async def list_balances(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int | None = None,
) -> BalanceListResponse:
    """List an employee's balances, newest year first."""
    query = select(LeaveBalance).where(col(LeaveBalance.employee_id) == employee_id)
    if year is not None:
        query = query.where(col(LeaveBalance.year) == year)
    result = await session.execute(
        query.order_by(col(LeaveBalance.year).desc(), col(LeaveBalance.leave_type_id))
    )
    balances = list(result.scalars().all())
    return BalanceListResponse(items=[_build_balance_response(b) for b in balances], total=len(balances))


async def list_reservations(session: AsyncSession, balance_id: uuid.UUID) -> list[ReservationResponse]:
    result = await session.execute(
        select(LeaveReservation)
        .where(col(LeaveReservation.balance_id) == balance_id)
        .order_by(col(LeaveReservation.created_at))
    )
    return [_build_reservation_response(r) for r in result.scalars().all()]
