from __future__ import annotations

import enum


class ApplicationStatus(enum.StrEnum):
    """State machine for leave applications."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED}
)


class ApprovalDecision(enum.StrEnum):
    """Decision recorded in an approval trail entry."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReservationStatus(enum.StrEnum):
    """Lifecycle of a ledger reservation token."""

    HELD = "HELD"
    COMMITTED = "COMMITTED"
    RELEASED = "RELEASED"


class LeaveEventType(enum.StrEnum):
    """Events emitted to the notification dispatcher."""

    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    LEVEL_APPROVED = "LEVEL_APPROVED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    BALANCE_ROLLED_OVER = "BALANCE_ROLLED_OVER"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_TYPE = "LEAVE_TYPE"
    POLICY = "POLICY"
    BALANCE = "BALANCE"
    APPLICATION = "APPLICATION"
    ROLLOVER = "ROLLOVER"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DEACTIVATE = "DEACTIVATE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    ROLLOVER = "ROLLOVER"
