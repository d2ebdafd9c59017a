# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AdminDep, AuthDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.balance import BalanceListResponse
from leave_ledger.schemas.policy import AssignPolicyRequest, PolicyInput, PolicyListResponse, PolicyResponse
from leave_ledger.services import ledger as ledger_service
from leave_ledger.services import policy as policy_service

policies_router = APIRouter(
    prefix="/policies",
    tags=["policies"],
)


@policies_router.post("", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def create_policy(
    payload: PolicyInput,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyResponse:
    """Create a leave policy with its rules and approval hierarchy."""
    return await policy_service.create_policy(session, auth, payload)


@policies_router.get("", response_model=PolicyListResponse)
async def list_policies(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> PolicyListResponse:
    """List all leave policies."""
    return await policy_service.list_policies(session, offset, limit)


@policies_router.get("/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PolicyResponse:
    return await policy_service.get_policy(session, policy_id)


@policies_router.put("/{policy_id}", response_model=PolicyResponse)
async def update_policy(
    policy_id: uuid.UUID,
    payload: PolicyInput,
    session: SessionDep,
    auth: AdminDep,
) -> PolicyResponse:
    """Replace a policy's rules and hierarchy, bumping its version."""
    return await policy_service.update_policy(session, auth, policy_id, payload)


@policies_router.post(
    "/{policy_id}/assignments",
    response_model=BalanceListResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_policy(
    policy_id: uuid.UUID,
    payload: AssignPolicyRequest,
    session: SessionDep,
    auth: AdminDep,
) -> BalanceListResponse:
    """Assign a policy to an employee for a year, opening their balances."""
    return await ledger_service.assign_policy(session, auth, policy_id, payload.employee_id, payload.year)
