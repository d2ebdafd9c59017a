from sqlmodel import SQLModel

from leave_ledger.models.application import ApprovalTrailEntry, LeaveApplication
from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LeaveBalance, LeaveReservation
from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.enums import (
    ApplicationStatus,
    ApprovalDecision,
    AuditAction,
    AuditEntityType,
    LeaveEventType,
    ReservationStatus,
)
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.policy import LeavePolicy, PolicyApprovalLevel, PolicyLeaveTypeRule
from leave_ledger.models.rollover import LeaveRollover

__all__ = [
    "ApplicationStatus",
    "ApprovalDecision",
    "ApprovalTrailEntry",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "LeaveApplication",
    "LeaveBalance",
    "LeaveEventType",
    "LeavePolicy",
    "LeaveReservation",
    "LeaveRollover",
    "LeaveType",
    "PolicyApprovalLevel",
    "PolicyLeaveTypeRule",
    "ReservationStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
]
