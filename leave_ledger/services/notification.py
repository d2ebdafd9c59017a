# ruff: noqa: TC003
"""Port to the external notification dispatcher.

The engine only hands events over; delivery (email, push, in-app) belongs to
the dispatcher implementation wired in at startup.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from leave_ledger.models.enums import LeaveEventType

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveEvent(BaseModel):
    """A state change the notification dispatcher may want to deliver."""

    event_type: LeaveEventType
    employee_id: uuid.UUID
    application_id: uuid.UUID | None = None
    balance_id: uuid.UUID | None = None
    actor_id: uuid.UUID | None = None
    payload: dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=_now_utc)


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Interface for the Notification dispatcher."""

    async def dispatch(self, event: LeaveEvent) -> None:
        """Hand an event over for delivery."""
        ...


class InMemoryNotificationDispatcher:
    """In-memory stub implementation for development and tests."""

    def __init__(self) -> None:
        self.events: list[LeaveEvent] = []

    async def dispatch(self, event: LeaveEvent) -> None:
        """Record the event."""
        self.events.append(event)

    def of_type(self, event_type: LeaveEventType) -> list[LeaveEvent]:
        """Return recorded events of one type, oldest first."""
        return [e for e in self.events if e.event_type == event_type]


_dispatcher: NotificationDispatcher = InMemoryNotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Return the active dispatcher."""
    return _dispatcher


def set_notification_dispatcher(dispatcher: NotificationDispatcher) -> None:
    """Override the dispatcher (for testing or production wiring)."""
    global _dispatcher
    _dispatcher = dispatcher


async def emit(event: LeaveEvent) -> None:
    """Dispatch an event after the originating state change has committed.

    Delivery failures are logged and swallowed: the committed ledger state
    is authoritative and must not be rolled back by a notification outage.
    """
    try:
        await _dispatcher.dispatch(event)
    except Exception:
        logger.exception("Failed to dispatch %s for employee=%s", event.event_type, event.employee_id)
