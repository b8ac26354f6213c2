# backend/yugi/models/booking.py
"""
Booking records for the YUGI platform.

A booking stores the class snapshot it was purchased against. Settlement and
refund math read prices from that snapshot, never from the live class, so
later edits to the class cannot rewrite history.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from ..core.money import Money


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    UPCOMING = "upcoming"  # Initial
    COMPLETED = "completed"  # Terminal: class end time passed
    CANCELLED = "cancelled"  # Terminal: cancelled before start

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.UPCOMING


class CancelledBy(str, Enum):
    USER = "user"
    PROVIDER = "provider"


@dataclass(frozen=True)
class ClassSnapshot:
    """Class details captured at booking time."""

    provider_id: str
    class_name: str
    base_price: Money
    location: str = ""
    service_fee: Money = field(default_factory=lambda: Money.of("1.99"))
    requires_child_selection: bool = False

    @property
    def gross_amount(self) -> Money:
        return self.base_price + self.service_fee


@dataclass(frozen=True)
class BookingRequest:
    """Caller input for a new booking."""

    class_id: str
    user_id: str
    start_time: datetime
    duration_seconds: int
    participant_count: int = 1
    selected_child_ids: Tuple[str, ...] = ()
    special_requirements: Optional[str] = None


@dataclass(frozen=True)
class Booking:
    id: str
    booking_number: str
    class_id: str
    user_id: str
    status: BookingStatus
    start_time: datetime
    duration_seconds: int
    participant_count: int
    selected_child_ids: Tuple[str, ...] = ()
    special_requirements: Optional[str] = None
    attended: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None
    refund_amount: Optional[Money] = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration_seconds)

    def is_due(self, now: datetime) -> bool:
        """True once the class end time has passed."""
        return now >= self.end_time


@dataclass(frozen=True)
class EnhancedBooking:
    """A booking together with its class snapshot. Created and stored as one unit."""

    booking: Booking
    snapshot: ClassSnapshot

    @property
    def id(self) -> str:
        return self.booking.id

    @property
    def status(self) -> BookingStatus:
        return self.booking.status

    @property
    def provider_id(self) -> str:
        return self.snapshot.provider_id

    @property
    def gross_amount(self) -> Money:
        return self.snapshot.gross_amount

    def with_booking(self, **changes: object) -> "EnhancedBooking":
        return EnhancedBooking(booking=replace(self.booking, **changes), snapshot=self.snapshot)
