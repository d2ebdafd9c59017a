# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import ApplicationStatus, ApprovalDecision

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitApplicationPayload(BaseModel):
    """Request body for submitting a leave application."""

    leave_type_id: uuid.UUID
    policy_id: uuid.UUID
    start_date: date
    end_date: date
    reason: str = Field(max_length=2000)
    # Admins may file on behalf of an employee; defaults to the caller.
    employee_id: uuid.UUID | None = None


class ApprovePayload(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class RejectPayload(BaseModel):
    rejection_reason: str = Field(max_length=2000)

    @model_validator(mode="after")
    def _validate_reason(self) -> Self:
        if not self.rejection_reason.strip():
            msg = "rejection_reason must not be empty"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovalTrailEntryResponse(BaseModel):
    level: int
    approver_id: uuid.UUID
    approver_role: str
    decision: ApprovalDecision
    comment: str | None
    timestamp: datetime


class ApplicationResponse(BaseModel):
    """Response schema for a single leave application."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    policy_id: uuid.UUID
    start_date: date
    end_date: date
    requested_days: int
    reason: str
    status: ApplicationStatus
    current_approval_level: int
    approval_chain: list[str]
    approval_trail: list[ApprovalTrailEntryResponse]
    rejection_reason: str | None
    reservation_id: uuid.UUID
    created_at: datetime
    decided_at: datetime | None


class ApplicationListResponse(BaseModel):
    items: list[ApplicationResponse]
    total: int
