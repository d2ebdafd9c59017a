# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AuthDep, ensure_self_or_admin
from leave_ledger.config import get_settings
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import ApplicationStatus
from leave_ledger.schemas.application import (
    ApplicationListResponse,
    ApplicationResponse,
    ApprovePayload,
    RejectPayload,
    SubmitApplicationPayload,
)
from leave_ledger.services import application as application_service

applications_router = APIRouter(
    prefix="/applications",
    tags=["applications"],
)


@applications_router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(
    payload: SubmitApplicationPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    """Submit a leave application, reserving the requested days."""
    return await application_service.submit_application(session, auth, payload)


@applications_router.get("", response_model=ApplicationListResponse)
async def list_applications(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    status_filter: ApplicationStatus | None = Query(default=None, alias="status"),
    leave_type_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ApplicationListResponse:
    """List leave applications.

    Employees see only their own; admins may filter by any employee.
    """
    if auth.role not in get_settings().admin_roles:
        employee_id = auth.user_id
    return await application_service.list_applications(
        session, employee_id, status_filter, leave_type_id, offset, limit
    )


@applications_router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    application = await application_service.get_application(session, application_id)
    if auth.role not in application.approval_chain:
        ensure_self_or_admin(auth, application.employee_id)
    return application


@applications_router.post("/{application_id}/approve", response_model=ApplicationResponse)
async def approve_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovePayload | None = None,
) -> ApplicationResponse:
    """Approve at the current level; the caller's role must match that level."""
    return await application_service.approve_application(session, auth, application_id, payload)


@applications_router.post("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    """Reject a pending application with a reason."""
    return await application_service.reject_application(session, auth, application_id, payload)


@applications_router.post("/{application_id}/cancel", response_model=ApplicationResponse)
async def cancel_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    """Withdraw your own application before any approver has acted."""
    return await application_service.cancel_application(session, auth, application_id)
