"""Domain events emitted on every booking and ledger transition."""

from .booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingCreated,
    DisputeOpened,
    DisputeResolved,
    WithdrawalRequested,
)
from .publisher import Event, EventListener, EventPublisher, NotificationSink

__all__ = [
    "BookingCreated",
    "BookingCompleted",
    "BookingCancelled",
    "DisputeOpened",
    "DisputeResolved",
    "WithdrawalRequested",
    "Event",
    "EventListener",
    "EventPublisher",
    "NotificationSink",
]
