# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AdminDep, AuthDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.leave_type import (
    CreateLeaveTypeRequest,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from leave_ledger.services import leave_type as leave_type_service

leave_types_router = APIRouter(
    prefix="/leave-types",
    tags=["leave-types"],
)


@leave_types_router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Add a leave type to the catalog (admin only)."""
    return await leave_type_service.create_leave_type(session, auth, payload)


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
    active_only: bool = Query(default=False),
) -> LeaveTypeListResponse:
    return await leave_type_service.list_leave_types(session, active_only)


@leave_types_router.get("/{leave_type_id}", response_model=LeaveTypeResponse)
async def get_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeResponse:
    return await leave_type_service.get_leave_type(session, leave_type_id)


@leave_types_router.patch("/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Partially update a leave type (admin only)."""
    return await leave_type_service.update_leave_type(session, auth, leave_type_id, payload)


@leave_types_router.post("/{leave_type_id}/deactivate", response_model=LeaveTypeResponse)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Stop accepting new applications for a leave type (admin only)."""
    return await leave_type_service.deactivate_leave_type(session, auth, leave_type_id)


@leave_types_router.delete("/{leave_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Remove a leave type that was never used (admin only)."""
    await leave_type_service.delete_leave_type(session, auth, leave_type_id)
