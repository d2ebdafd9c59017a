# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Policy building blocks
# ---------------------------------------------------------------------------


class PolicyLeaveTypeRuleInput(BaseModel):
    """Entitlement rules for one leave type.

    Cross-field caps (carry-forward and encashment against ``max_days``) are
    checked by the policy service so the violated field can be reported.
    """

    leave_type_id: uuid.UUID
    max_days: int = Field(ge=0)
    carry_forward: bool = False
    max_carry_forward_days: int = Field(default=0, ge=0)
    encashment_eligible: bool = False
    max_encashment_days: int = Field(default=0, ge=0)
    encashment_rate: Decimal = Field(default=Decimal("1"), max_digits=12, decimal_places=2)


class ApprovalLevelInput(BaseModel):
    """One level of the approval hierarchy."""

    level: int
    required_role: str = Field(min_length=1, max_length=100)


class NotificationSettings(BaseModel):
    """Which events the policy wants delivered; stored for the dispatcher."""

    notify_on_apply: bool = True
    notify_on_approve: bool = True
    notify_on_reject: bool = True
    notify_on_cancel: bool = True


# ---------------------------------------------------------------------------
# API request / response schemas
# ---------------------------------------------------------------------------


class PolicyInput(BaseModel):
    """Full policy definition, used for both create and update."""

    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    rules: list[PolicyLeaveTypeRuleInput] = []
    approval_hierarchy: list[ApprovalLevelInput] = []
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class PolicyLeaveTypeRuleResponse(BaseModel):
    leave_type_id: uuid.UUID
    max_days: int
    carry_forward: bool
    max_carry_forward_days: int
    encashment_eligible: bool
    max_encashment_days: int
    encashment_rate: Decimal


class ApprovalLevelResponse(BaseModel):
    level: int
    required_role: str


class PolicyResponse(BaseModel):
    """Response schema for a policy with its rules and hierarchy."""

    id: uuid.UUID
    name: str
    description: str
    version: int
    rules: list[PolicyLeaveTypeRuleResponse]
    approval_hierarchy: list[ApprovalLevelResponse]
    notifications: NotificationSettings
    created_at: datetime
    updated_at: datetime


class PolicyListResponse(BaseModel):
    items: list[PolicyResponse]
    total: int


class AssignPolicyRequest(BaseModel):
    """Assign a policy to an employee for a year, opening their balances."""

    employee_id: uuid.UUID
    year: int = Field(ge=1900, le=9999)
