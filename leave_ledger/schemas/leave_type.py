# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class CreateLeaveTypeRequest(BaseModel):
    """Request body for creating a leave type."""

    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    default_days: int
    is_paid: bool = True


class UpdateLeaveTypeRequest(BaseModel):
    """Partial update of a leave type. Unset fields are left unchanged.

    Deactivation has its own endpoint and audit action.
    """

    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    default_days: int | None = None
    is_paid: bool | None = None


class LeaveTypeResponse(BaseModel):
    """Response schema for a leave type."""

    id: uuid.UUID
    name: str
    description: str
    default_days: int
    is_paid: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LeaveTypeListResponse(BaseModel):
    items: list[LeaveTypeResponse]
    total: int
