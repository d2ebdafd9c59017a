# ruff: noqa: TC003
"""Leave application state machine.

    (none) --submit--> PENDING(level=1)
    PENDING(L) --approve(role == chain[L])--> PENDING(L+1) | APPROVED at L == N
    PENDING(L) --reject(role in chain[L..N])--> REJECTED
    PENDING(1) --cancel(applicant, empty trail)--> CANCELLED

Every transition commits on its own so an approval chain spanning days
survives restarts. Ledger days are reserved on submit, committed on final
approval and released on rejection or cancellation.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.exceptions import InvalidInput, InvalidRange, InvalidState, NotAuthorized, NotFound
from leave_ledger.models.application import ApprovalTrailEntry, LeaveApplication
from leave_ledger.models.balance import LeaveReservation
from leave_ledger.models.enums import (
    TERMINAL_STATUSES,
    ApplicationStatus,
    ApprovalDecision,
    AuditAction,
    AuditEntityType,
    LeaveEventType,
    ReservationStatus,
)
from leave_ledger.schemas.application import (
    ApplicationListResponse,
    ApplicationResponse,
    ApprovalTrailEntryResponse,
)
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.leave_type import get_leave_type_or_404
from leave_ledger.services.ledger import (
    _reserve_days,
    _settle_reservation,
    employee_lock,
    ensure_balance,
    ledger_lock,
)
from leave_ledger.services.notification import LeaveEvent, emit
from leave_ledger.services.policy import get_hierarchy, get_policy_or_404, get_rule_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.application import ApprovePayload, RejectPayload, SubmitApplicationPayload
    from leave_ledger.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = [ApplicationStatus.PENDING.value, ApplicationStatus.APPROVED.value]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def inclusive_days(start_date: date, end_date: date) -> int:
    """Calendar days from start to end, both included."""
    return (end_date - start_date).days + 1


async def _get_trail(session: AsyncSession, application_id: uuid.UUID) -> list[ApprovalTrailEntry]:
    result = await session.execute(
        select(ApprovalTrailEntry)
        .where(col(ApprovalTrailEntry.application_id) == application_id)
        .order_by(col(ApprovalTrailEntry.level), col(ApprovalTrailEntry.created_at))
    )
    return list(result.scalars().all())


async def _build_application_response(session: AsyncSession, application: LeaveApplication) -> ApplicationResponse:
    trail = await _get_trail(session, application.id)
    return ApplicationResponse(
        id=application.id,
        employee_id=application.employee_id,
        leave_type_id=application.leave_type_id,
        policy_id=application.policy_id,
        start_date=application.start_date,
        end_date=application.end_date,
        requested_days=application.requested_days,
        reason=application.reason,
        status=ApplicationStatus(application.status),
        current_approval_level=application.current_approval_level,
        approval_chain=list(application.approval_chain),
        approval_trail=[
            ApprovalTrailEntryResponse(
                level=entry.level,
                approver_id=entry.approver_id,
                approver_role=entry.approver_role,
                decision=ApprovalDecision(entry.decision),
                comment=entry.comment,
                timestamp=entry.created_at,
            )
            for entry in trail
        ],
        rejection_reason=application.rejection_reason,
        reservation_id=application.reservation_id,
        created_at=application.created_at,
        decided_at=application.decided_at,
    )


async def _get_application_or_404(session: AsyncSession, application_id: uuid.UUID) -> LeaveApplication:
    result = await session.execute(select(LeaveApplication).where(col(LeaveApplication.id) == application_id))
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound("Leave application not found")
    return application


async def _check_overlap(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> None:
    """Raise InvalidRange if a pending or approved application overlaps the dates.

    Ranges are inclusive, so they overlap when
    existing.start <= new.end AND existing.end >= new.start.
    """
    result = await session.execute(
        select(
            exists().where(
                col(LeaveApplication.employee_id) == employee_id,
                col(LeaveApplication.status).in_(_ACTIVE_STATUSES),
                col(LeaveApplication.start_date) <= end_date,
                col(LeaveApplication.end_date) >= start_date,
            )
        )
    )
    if result.scalar():
        raise InvalidRange("Dates overlap an existing pending or approved application")


def _require_pending(application: LeaveApplication) -> None:
    if application.status in TERMINAL_STATUSES:
        raise InvalidState(f"Application is {application.status}; only PENDING applications can change")


async def _get_reservation(session: AsyncSession, reservation_id: uuid.UUID) -> LeaveReservation:
    result = await session.execute(select(LeaveReservation).where(col(LeaveReservation.id) == reservation_id))
    return result.scalar_one()


def _application_year(application: LeaveApplication) -> int:
    return application.start_date.year


async def _record_decision(
    session: AsyncSession,
    application: LeaveApplication,
    auth: AuthContext,
    decision: ApprovalDecision,
    comment: str | None,
) -> None:
    session.add(
        ApprovalTrailEntry(
            application_id=application.id,
            level=application.current_approval_level,
            approver_id=auth.user_id,
            approver_role=auth.role,
            decision=decision.value,
            comment=comment,
        )
    )
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise InvalidState("This approval level has already been decided") from None


async def _finish(
    session: AsyncSession,
    application: LeaveApplication,
    auth: AuthContext,
    action: AuditAction,
    before_dict: dict[str, object],
) -> None:
    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=action,
        before_json=before_dict,
        after_json=model_to_audit_dict(application),
    )
    await session.commit()
    await session.refresh(application)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_application(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitApplicationPayload,
) -> ApplicationResponse:
    """Submit a leave application, reserving its days on the ledger.

    Flow:
    1. Validate reason, dates and leave type
    2. Resolve the policy rule and freeze the approval chain
    3. Ensure the year's balance exists
    4. Under the balance lock: overlap check, reserve, create PENDING(level=1)
    5. Commit, then notify

    On InsufficientBalance nothing is persisted except a newly opened balance.
    """
    employee_id = payload.employee_id or auth.user_id
    if employee_id != auth.user_id and auth.role not in get_settings().admin_roles:
        raise NotAuthorized("Only administrators may apply on behalf of another employee")

    reason = payload.reason.strip()
    if not reason:
        raise InvalidInput("Reason must not be empty")
    if payload.end_date < payload.start_date:
        raise InvalidRange("end_date must not be before start_date")
    if payload.end_date.year != payload.start_date.year:
        raise InvalidRange("A leave application must fall within one calendar year; split it at the year boundary")

    leave_type = await get_leave_type_or_404(session, payload.leave_type_id)
    if not leave_type.is_active:
        raise InvalidInput(f"Leave type '{leave_type.name}' is no longer active")

    policy = await get_policy_or_404(session, payload.policy_id)
    await get_rule_for(session, policy.id, leave_type.id)
    hierarchy = await get_hierarchy(session, policy.id)
    if not hierarchy:
        raise InvalidState("Policy has no approval hierarchy")
    approval_chain = [level.required_role for level in hierarchy]

    requested_days = inclusive_days(payload.start_date, payload.end_date)
    year = payload.start_date.year

    balance = await ensure_balance(session, employee_id, policy, leave_type.id, year)

    async with employee_lock(employee_id), ledger_lock(employee_id, leave_type.id, year):
        try:
            await _check_overlap(session, employee_id, payload.start_date, payload.end_date)
            await session.refresh(balance)
            reservation = await _reserve_days(session, balance, requested_days)

            application = LeaveApplication(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                policy_id=policy.id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                requested_days=requested_days,
                reason=reason,
                status=ApplicationStatus.PENDING.value,
                current_approval_level=1,
                approval_chain=approval_chain,
                reservation_id=reservation.id,
            )
            session.add(application)
            await session.flush()

            await write_audit_log(
                session,
                actor_id=auth.user_id,
                entity_type=AuditEntityType.APPLICATION,
                entity_id=application.id,
                action=AuditAction.SUBMIT,
                after_json=model_to_audit_dict(application),
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    await session.refresh(application)
    logger.info(
        "Application %s submitted: employee=%s days=%d levels=%d",
        application.id,
        employee_id,
        requested_days,
        len(approval_chain),
    )
    await emit(
        LeaveEvent(
            event_type=LeaveEventType.APPLICATION_SUBMITTED,
            employee_id=employee_id,
            application_id=application.id,
            actor_id=auth.user_id,
            payload={"requested_days": requested_days, "next_role": approval_chain[0]},
        )
    )
    return await _build_application_response(session, application)


async def approve_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: ApprovePayload | None = None,
) -> ApplicationResponse:
    """Record an approval at the current level.

    The approver's role must equal the role required at the current level.
    The last level commits the reservation and marks the application
    APPROVED; earlier levels advance to the next one.
    """
    application = await _get_application_or_404(session, application_id)
    _require_pending(application)

    async with ledger_lock(application.employee_id, application.leave_type_id, _application_year(application)):
        await session.refresh(application)
        _require_pending(application)

        level = application.current_approval_level
        chain = list(application.approval_chain)
        required_role = chain[level - 1]
        if auth.role != required_role:
            raise NotAuthorized(f"Level {level} requires role {required_role}")

        before_dict = model_to_audit_dict(application)
        await _record_decision(
            session, application, auth, ApprovalDecision.APPROVED, payload.comment if payload else None
        )

        final = level == len(chain)
        try:
            if final:
                reservation = await _get_reservation(session, application.reservation_id)
                await _settle_reservation(session, reservation, ReservationStatus.COMMITTED)
                application.status = ApplicationStatus.APPROVED.value
                application.decided_at = datetime.now(UTC)
            else:
                application.current_approval_level = level + 1
            await session.flush()
            await _finish(session, application, auth, AuditAction.APPROVE, before_dict)
        except Exception:
            await session.rollback()
            raise

    if final:
        logger.info("Application %s approved at final level %d", application.id, level)
        event = LeaveEvent(
            event_type=LeaveEventType.APPROVED,
            employee_id=application.employee_id,
            application_id=application.id,
            actor_id=auth.user_id,
            payload={"level": level, "requested_days": application.requested_days},
        )
    else:
        logger.info("Application %s approved at level %d of %d", application.id, level, len(chain))
        event = LeaveEvent(
            event_type=LeaveEventType.LEVEL_APPROVED,
            employee_id=application.employee_id,
            application_id=application.id,
            actor_id=auth.user_id,
            payload={"level": level, "next_role": chain[level]},
        )
    await emit(event)
    return await _build_application_response(session, application)


async def reject_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: RejectPayload,
) -> ApplicationResponse:
    """Reject a pending application and release its reservation.

    Any role required at the current level or a later one may reject.
    """
    rejection_reason = payload.rejection_reason.strip()
    if not rejection_reason:
        raise InvalidInput("rejection_reason must not be empty")

    application = await _get_application_or_404(session, application_id)
    _require_pending(application)

    async with ledger_lock(application.employee_id, application.leave_type_id, _application_year(application)):
        await session.refresh(application)
        _require_pending(application)

        level = application.current_approval_level
        authorized_roles = set(application.approval_chain[level - 1 :])
        if auth.role not in authorized_roles:
            raise NotAuthorized(f"Role {auth.role} cannot reject at level {level}")

        before_dict = model_to_audit_dict(application)
        await _record_decision(session, application, auth, ApprovalDecision.REJECTED, rejection_reason)
        try:
            reservation = await _get_reservation(session, application.reservation_id)
            await _settle_reservation(session, reservation, ReservationStatus.RELEASED)
            application.status = ApplicationStatus.REJECTED.value
            application.rejection_reason = rejection_reason
            application.decided_at = datetime.now(UTC)
            await session.flush()
            await _finish(session, application, auth, AuditAction.REJECT, before_dict)
        except Exception:
            await session.rollback()
            raise

    logger.info("Application %s rejected at level %d by %s", application.id, level, auth.role)
    await emit(
        LeaveEvent(
            event_type=LeaveEventType.REJECTED,
            employee_id=application.employee_id,
            application_id=application.id,
            actor_id=auth.user_id,
            payload={"level": level, "rejection_reason": rejection_reason},
        )
    )
    return await _build_application_response(session, application)


async def cancel_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
) -> ApplicationResponse:
    """Withdraw a pending application before any approver has acted."""
    application = await _get_application_or_404(session, application_id)
    _require_pending(application)
    if application.employee_id != auth.user_id:
        raise NotAuthorized("Only the applicant can cancel an application")

    async with ledger_lock(application.employee_id, application.leave_type_id, _application_year(application)):
        await session.refresh(application)
        _require_pending(application)
        if await _get_trail(session, application.id):
            raise InvalidState("Application already has approvals recorded and can no longer be cancelled")

        before_dict = model_to_audit_dict(application)
        try:
            reservation = await _get_reservation(session, application.reservation_id)
            await _settle_reservation(session, reservation, ReservationStatus.RELEASED)
            application.status = ApplicationStatus.CANCELLED.value
            application.decided_at = datetime.now(UTC)
            await session.flush()
            await _finish(session, application, auth, AuditAction.CANCEL, before_dict)
        except Exception:
            await session.rollback()
            raise

    logger.info("Application %s cancelled by applicant", application.id)
    await emit(
        LeaveEvent(
            event_type=LeaveEventType.CANCELLED,
            employee_id=application.employee_id,
            application_id=application.id,
            actor_id=auth.user_id,
        )
    )
    return await _build_application_response(session, application)


async def get_application(session: AsyncSession, application_id: uuid.UUID) -> ApplicationResponse:
    application = await _get_application_or_404(session, application_id)
    return await _build_application_response(session, application)


async def list_applications(
    session: AsyncSession,
    employee_id: uuid.UUID | None = None,
    status_filter: ApplicationStatus | None = None,
    leave_type_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> ApplicationListResponse:
    """List applications with optional filters, newest first."""
    filters = []
    if employee_id is not None:
        filters.append(col(LeaveApplication.employee_id) == employee_id)
    if status_filter is not None:
        filters.append(col(LeaveApplication.status) == status_filter.value)
    if leave_type_id is not None:
        filters.append(col(LeaveApplication.leave_type_id) == leave_type_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveApplication).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveApplication)
        .where(*filters)
        .order_by(col(LeaveApplication.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    applications = list(result.scalars().all())

    return ApplicationListResponse(
        items=[await _build_application_response(session, a) for a in applications],
        total=total,
    )
