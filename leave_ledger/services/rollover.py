# ruff: noqa: TC003
"""Year-end rollover processing.

Closes every balance of a year and opens the next year's balance for the
same (employee, leave type), or credits it when an advance booking opened it
first. Unused days are carried forward up to the policy cap, then encashed
up to the encashment cap, and the rest forfeited.
Each key commits in its own transaction so one failing employee never blocks
the others.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.exceptions import AppError, PendingReservationsExist
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.enums import AuditAction, AuditEntityType, LeaveEventType
from leave_ledger.models.rollover import LeaveRollover
from leave_ledger.schemas.rollover import RolloverOutcome, SkippedKey
from leave_ledger.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_ledger.services.ledger import _find_balance, _get_balance_or_404, ledger_lock
from leave_ledger.services.notification import LeaveEvent, emit
from leave_ledger.services.payroll import EncashmentPayout, get_payroll_gateway
from leave_ledger.services.policy import get_rule_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.policy import PolicyLeaveTypeRule

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


@dataclass
class RolloverRunResult:
    """Result of a rollover run for one year."""

    year: int
    processed: int = 0
    already_rolled_over: int = 0
    skipped: list[SkippedKey] = field(default_factory=list)
    outcomes: list[RolloverOutcome] = field(default_factory=list)
    total_encashment_amount: Decimal = Decimal("0")


class _AlreadyRolledOver(Exception):
    pass


@dataclass(frozen=True)
class RolloverSplit:
    carried_forward_days: int
    encashed_days: int
    forfeited_days: int


def split_remaining(remaining_days: int, rule: PolicyLeaveTypeRule) -> RolloverSplit:
    """Divide unused days into carried, encashed and forfeited portions."""
    remaining = max(remaining_days, 0)
    carry = min(remaining, rule.max_carry_forward_days) if rule.carry_forward else 0
    encash = min(remaining - carry, rule.max_encashment_days) if rule.encashment_eligible else 0
    return RolloverSplit(
        carried_forward_days=carry,
        encashed_days=encash,
        forfeited_days=remaining - carry - encash,
    )


def encashment_amount(days: int, rate: Decimal) -> Decimal:
    return (Decimal(days) * rate).quantize(_CENTS, rounding=ROUND_HALF_UP)


async def _open_next_balance(
    session: AsyncSession,
    balance: LeaveBalance,
    rule: PolicyLeaveTypeRule,
    carry: int,
) -> LeaveBalance | None:
    """Create next year's balance at ``max_days + carry``.

    Returns None if the key was opened concurrently (advance booking).
    """
    next_total = rule.max_days + carry
    next_balance = LeaveBalance(
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        policy_id=balance.policy_id,
        year=balance.year + 1,
        total_days=next_total,
        used_days=0,
        reserved_days=0,
        remaining_days=next_total,
        carried_forward_days=carry,
    )
    try:
        async with session.begin_nested():
            session.add(next_balance)
            await session.flush()
    except IntegrityError:
        return None

    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.BALANCE,
        entity_id=next_balance.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(next_balance),
    )
    return next_balance


async def _credit_existing_balance(session: AsyncSession, next_balance: LeaveBalance, carry: int) -> None:
    """Add carried-forward days to a next-year balance opened before rollover.

    Days already reserved or used on it are left untouched; only the totals grow.
    """
    if carry == 0:
        return
    await session.refresh(next_balance)
    before = model_to_audit_dict(next_balance)
    await session.execute(
        update(LeaveBalance)
        .where(col(LeaveBalance.id) == next_balance.id)
        .values(
            total_days=col(LeaveBalance.total_days) + carry,
            remaining_days=col(LeaveBalance.remaining_days) + carry,
            carried_forward_days=col(LeaveBalance.carried_forward_days) + carry,
            version=col(LeaveBalance.version) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    await session.refresh(next_balance)
    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.BALANCE,
        entity_id=next_balance.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(next_balance),
    )


async def _roll_one(
    session: AsyncSession,
    balance_id: uuid.UUID,
    year: int,
) -> tuple[LeaveRollover, Decimal]:
    """Close one balance and open or credit its successor within the caller's transaction."""
    result = await session.execute(select(LeaveBalance).where(col(LeaveBalance.id) == balance_id))
    balance = result.scalar_one()

    recorded = await session.execute(select(exists().where(col(LeaveRollover.balance_id) == balance.id)))
    if recorded.scalar():
        raise _AlreadyRolledOver
    if balance.reserved_days > 0:
        raise PendingReservationsExist(f"{balance.reserved_days} days still reserved on balance {balance.id}")

    rule = await get_rule_for(session, balance.policy_id, balance.leave_type_id)
    split = split_remaining(balance.remaining_days, rule)
    amount = encashment_amount(split.encashed_days, rule.encashment_rate)

    next_balance = await _find_balance(session, balance.employee_id, balance.leave_type_id, year + 1)
    if next_balance is None:
        next_balance = await _open_next_balance(session, balance, rule, split.carried_forward_days)
        if next_balance is None:
            # Opened concurrently by an advance booking.
            next_balance = await _get_balance_or_404(session, balance.employee_id, balance.leave_type_id, year + 1)
            await _credit_existing_balance(session, next_balance, split.carried_forward_days)
    else:
        await _credit_existing_balance(session, next_balance, split.carried_forward_days)

    rollover = LeaveRollover(
        balance_id=balance.id,
        next_balance_id=next_balance.id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        from_year=year,
        remaining_days=balance.remaining_days,
        carried_forward_days=split.carried_forward_days,
        encashed_days=split.encashed_days,
        forfeited_days=split.forfeited_days,
        encashment_amount=amount,
    )
    session.add(rollover)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.ROLLOVER,
        entity_id=rollover.id,
        action=AuditAction.ROLLOVER,
        before_json=model_to_audit_dict(balance),
        after_json=model_to_audit_dict(rollover),
    )
    return rollover, rule.encashment_rate


async def _notify(rollover: LeaveRollover, rate: Decimal) -> None:
    if rollover.encashed_days > 0:
        payout = EncashmentPayout(
            rollover_id=rollover.id,
            employee_id=rollover.employee_id,
            leave_type_id=rollover.leave_type_id,
            year=rollover.from_year,
            days=rollover.encashed_days,
            rate=rate,
            amount=rollover.encashment_amount,
        )
        try:
            await get_payroll_gateway().record_encashment(payout)
        except Exception:
            logger.exception("Failed to record encashment payout for rollover %s", rollover.id)

    await emit(
        LeaveEvent(
            event_type=LeaveEventType.BALANCE_ROLLED_OVER,
            employee_id=rollover.employee_id,
            balance_id=rollover.next_balance_id,
            actor_id=SYSTEM_ACTOR,
            payload={
                "from_year": rollover.from_year,
                "carried_forward_days": rollover.carried_forward_days,
                "encashed_days": rollover.encashed_days,
                "forfeited_days": rollover.forfeited_days,
                "encashment_amount": str(rollover.encashment_amount),
            },
        )
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_year_end_rollover(session: AsyncSession, year: int) -> RolloverRunResult:
    """Roll every balance of ``year`` into ``year + 1``.

    For each (employee, leave type) key:
    1. Skip if a rollover is already recorded for the balance (idempotent re-run)
    2. Skip with PendingReservationsExist if days are still reserved
    3. Split remaining days into carry-forward, encashment and forfeiture
    4. Open the next balance at ``max_days + carry``, or add ``carry`` to it
       if it was opened early by an advance booking
    5. Record the rollover and audit it, commit
    6. Send the encashment payout to payroll and notify

    Failures are per key and reported in ``skipped``; the run never aborts.
    """
    result = RolloverRunResult(year=year)

    keys = (
        await session.execute(
            select(LeaveBalance.id, LeaveBalance.employee_id, LeaveBalance.leave_type_id)
            .where(col(LeaveBalance.year) == year)
            .order_by(col(LeaveBalance.employee_id), col(LeaveBalance.leave_type_id))
        )
    ).all()
    await session.rollback()

    for balance_id, employee_id, leave_type_id in keys:
        async with ledger_lock(employee_id, leave_type_id, year), ledger_lock(employee_id, leave_type_id, year + 1):
            try:
                rollover, rate = await _roll_one(session, balance_id, year)
                await session.commit()
            except (_AlreadyRolledOver, IntegrityError):
                # IntegrityError: the same balance was rolled over concurrently.
                await session.rollback()
                result.already_rolled_over += 1
                continue
            except AppError as exc:
                await session.rollback()
                logger.warning(
                    "Rollover skipped for employee=%s leave_type=%s year=%d: %s",
                    employee_id,
                    leave_type_id,
                    year,
                    exc.message,
                )
                result.skipped.append(
                    SkippedKey(
                        employee_id=employee_id,
                        leave_type_id=leave_type_id,
                        year=year,
                        reason=type(exc).__name__,
                        detail=exc.message,
                    )
                )
                continue
            except Exception:
                await session.rollback()
                logger.exception(
                    "Rollover failed for employee=%s leave_type=%s year=%d", employee_id, leave_type_id, year
                )
                result.skipped.append(
                    SkippedKey(employee_id=employee_id, leave_type_id=leave_type_id, year=year, reason="Error")
                )
                continue

        await session.refresh(rollover)
        result.processed += 1
        result.total_encashment_amount += rollover.encashment_amount
        result.outcomes.append(
            RolloverOutcome(
                employee_id=rollover.employee_id,
                leave_type_id=rollover.leave_type_id,
                remaining_days=rollover.remaining_days,
                carried_forward_days=rollover.carried_forward_days,
                encashed_days=rollover.encashed_days,
                forfeited_days=rollover.forfeited_days,
                encashment_amount=rollover.encashment_amount,
                next_balance_id=rollover.next_balance_id,
            )
        )
        await _notify(rollover, rate)

    logger.info(
        "Rollover %d complete: processed=%d already=%d skipped=%d encashed=%s",
        year,
        result.processed,
        result.already_rolled_over,
        len(result.skipped),
        result.total_encashment_amount,
    )
    return result


def rollover_year_for(today: date) -> int | None:
    """Return the year to close when ``today`` is Jan 1, else None."""
    if today.month == 1 and today.day == 1:
        return today.year - 1
    return None
