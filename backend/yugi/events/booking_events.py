"""Booking and settlement domain events."""

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..core.money import Money


def _plain(value: Any) -> Any:
    if isinstance(value, Money):
        return value.to_json()
    if isinstance(value, Enum):
        return value.value
    return value


class _Event:
    def to_dict(self) -> Dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]


@dataclass(frozen=True)
class BookingCreated(_Event):
    """Fired after a booking is successfully created."""

    booking_id: str
    booking_number: str
    user_id: str
    provider_id: str
    class_id: str
    start_time: datetime
    gross_amount: Money
    created_at: datetime


@dataclass(frozen=True)
class BookingCompleted(_Event):
    """Fired after a booking is marked complete."""

    booking_id: str
    provider_id: str
    completed_at: datetime
    net_amount: Money
    held_until: datetime


@dataclass(frozen=True)
class BookingCancelled(_Event):
    """Fired after a booking is cancelled."""

    booking_id: str
    user_id: str
    provider_id: str
    cancelled_by: str  # 'user' or 'provider'
    cancelled_at: datetime
    refund_amount: Money
    reason: Optional[str] = None


@dataclass(frozen=True)
class DisputeOpened(_Event):
    booking_id: str
    provider_id: str
    amount: Money
    opened_at: datetime


@dataclass(frozen=True)
class DisputeResolved(_Event):
    booking_id: str
    provider_id: str
    outcome: str  # 'upheld' or 'rejected'
    amount: Money
    resolved_at: datetime


@dataclass(frozen=True)
class WithdrawalRequested(_Event):
    withdrawal_id: str
    provider_id: str
    bank_account_id: str
    amount: Money
    requested_at: datetime
