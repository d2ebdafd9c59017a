# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import exists, func, select
from sqlmodel import col

from leave_ledger.exceptions import Conflict, InvalidInput, NotFound, TypeInUse
from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.policy import PolicyLeaveTypeRule
from leave_ledger.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.leave_type import CreateLeaveTypeRequest, UpdateLeaveTypeRequest

logger = logging.getLogger(__name__)

# Fields that define entitlement and become immutable once a balance is used.
_ENTITLEMENT_FIELDS = ("default_days", "is_paid")


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        name=leave_type.name,
        description=leave_type.description,
        default_days=leave_type.default_days,
        is_paid=leave_type.is_paid,
        is_active=leave_type.is_active,
        created_at=leave_type.created_at,
        updated_at=leave_type.updated_at,
    )


def _validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise InvalidInput("Leave type name must not be empty")
    return name


def _validate_default_days(default_days: int) -> int:
    if default_days < 0:
        raise InvalidInput("default_days must be non-negative")
    return default_days


async def _ensure_name_available(
    session: AsyncSession,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(LeaveType).where(func.lower(col(LeaveType.name)) == name.lower())
    if exclude_id is not None:
        query = query.where(col(LeaveType.id) != exclude_id)
    result = await session.execute(query)
    if result.scalar_one_or_none() is not None:
        raise Conflict(f"Leave type '{name}' already exists")


async def get_leave_type_or_404(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    """Fetch a leave type by ID. Raises NotFound if absent."""
    result = await session.execute(select(LeaveType).where(col(LeaveType.id) == leave_type_id))
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFound("Leave type not found")
    return leave_type


async def _has_used_balance(session: AsyncSession, leave_type_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(
            exists().where(
                col(LeaveBalance.leave_type_id) == leave_type_id,
                col(LeaveBalance.used_days) > 0,
            )
        )
    )
    return bool(result.scalar())


async def _is_referenced(session: AsyncSession, leave_type_id: uuid.UUID) -> bool:
    """True if any policy rule, balance or application points at the type."""
    for model in (PolicyLeaveTypeRule, LeaveBalance, LeaveApplication):
        result = await session.execute(select(exists().where(model.leave_type_id == leave_type_id)))
        if result.scalar():
            return True
    return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Create a new, active leave type."""
    name = _validate_name(payload.name)
    default_days = _validate_default_days(payload.default_days)
    await _ensure_name_available(session, name)

    leave_type = LeaveType(
        name=name,
        description=payload.description,
        default_days=default_days,
        is_paid=payload.is_paid,
    )
    session.add(leave_type)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    logger.info("Created leave type %s (%s)", leave_type.name, leave_type.id)
    return _build_leave_type_response(leave_type)


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Apply a partial update.

    Entitlement fields (``default_days``, ``is_paid``) are frozen once any
    balance of this type has recorded usage.
    """
    leave_type = await get_leave_type_or_404(session, leave_type_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in changes:
        changes["name"] = _validate_name(changes["name"])
        await _ensure_name_available(session, changes["name"], exclude_id=leave_type.id)
    if "default_days" in changes:
        _validate_default_days(changes["default_days"])

    touches_entitlement = any(
        field in changes and changes[field] != getattr(leave_type, field) for field in _ENTITLEMENT_FIELDS
    )
    if touches_entitlement and await _has_used_balance(session, leave_type.id):
        raise TypeInUse("Leave type is referenced by used balances; entitlement fields cannot change")

    before_dict = model_to_audit_dict(leave_type)
    for field, value in changes.items():
        setattr(leave_type, field, value)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def deactivate_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
) -> LeaveTypeResponse:
    """Soft-delete a leave type. Always permitted; blocks only new submissions."""
    leave_type = await get_leave_type_or_404(session, leave_type_id)
    if not leave_type.is_active:
        return _build_leave_type_response(leave_type)

    before_dict = model_to_audit_dict(leave_type)
    leave_type.is_active = False
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.DEACTIVATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    logger.info("Deactivated leave type %s (%s)", leave_type.name, leave_type.id)
    return _build_leave_type_response(leave_type)


async def delete_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
) -> None:
    """Hard-delete a leave type that nothing has ever referenced."""
    leave_type = await get_leave_type_or_404(session, leave_type_id)
    if await _is_referenced(session, leave_type.id):
        raise TypeInUse("Leave type is referenced by policies or history; deactivate it instead")

    before_dict = model_to_audit_dict(leave_type)
    await session.delete(leave_type)

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type_id,
        action=AuditAction.DELETE,
        before_json=before_dict,
    )
    await session.commit()


async def get_leave_type(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveTypeResponse:
    leave_type = await get_leave_type_or_404(session, leave_type_id)
    return _build_leave_type_response(leave_type)


async def list_leave_types(session: AsyncSession, active_only: bool = False) -> LeaveTypeListResponse:
    """List leave types ordered by name."""
    query = select(LeaveType).order_by(col(LeaveType.name))
    if active_only:
        query = query.where(col(LeaveType.is_active).is_(True))
    result = await session.execute(query)
    leave_types = list(result.scalars().all())
    return LeaveTypeListResponse(
        items=[_build_leave_type_response(t) for t in leave_types],
        total=len(leave_types),
    )
