"""Refund policy evaluation for booking cancellations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..core.clock import require_aware
from ..core.constants import SECONDS_PER_HOUR
from ..core.exceptions import AlreadyOccurredError
from ..core.money import Money
from ..models.booking import CancelledBy

DEFAULT_REFUND_CUTOFF_HOURS = 24


class RefundPolicy(str, Enum):
    FULL_REFUND = "full_refund"
    NO_REFUND = "no_refund"
    PROVIDER_CANCELLED = "provider_cancelled"


@dataclass(frozen=True)
class RefundOutcome:
    refund_amount: Money
    service_fee_withheld: Money
    hours_until_class: float
    policy: RefundPolicy
    policy_basis: str = ""

    @property
    def is_refundable(self) -> bool:
        return self.refund_amount.is_positive()

    def to_payload(self) -> dict[str, object]:
        return {
            "refund_amount": self.refund_amount.to_json(),
            "service_fee_withheld": self.service_fee_withheld.to_json(),
            "hours_until_class": round(self.hours_until_class, 4),
            "policy": self.policy.value,
            "policy_basis": self.policy_basis,
        }


def hours_until(now: datetime, class_start_time: datetime) -> float:
    """Exact hours between ``now`` and the class start; negative once it has started."""
    now = require_aware(now, "now")
    class_start_time = require_aware(class_start_time, "class_start_time")
    return (class_start_time - now).total_seconds() / SECONDS_PER_HOUR


def compute_refund(
    now: datetime,
    class_start_time: datetime,
    base_price: Money,
    service_fee: Money,
    initiated_by: CancelledBy = CancelledBy.USER,
    *,
    cutoff_hours: int = DEFAULT_REFUND_CUTOFF_HOURS,
    booking_id: Optional[str] = None,
) -> RefundOutcome:
    """
    Work out what a cancellation refunds.

    The service fee is never refunded. A provider cancelling always refunds
    the base price. A user cancelling gets the base price back at or beyond
    ``cutoff_hours`` before the class and nothing inside that window. Once
    the class has started there is nothing to cancel.
    """
    hours = hours_until(now, class_start_time)

    if initiated_by is CancelledBy.PROVIDER:
        return RefundOutcome(
            refund_amount=base_price,
            service_fee_withheld=service_fee,
            hours_until_class=hours,
            policy=RefundPolicy.PROVIDER_CANCELLED,
            policy_basis="Cancelled by provider: full class price refunded",
        )

    if hours <= 0:
        raise AlreadyOccurredError(booking_id, hours)

    # Compare in seconds so a float hour count cannot blur the boundary.
    seconds = (class_start_time - now).total_seconds()
    if seconds >= cutoff_hours * SECONDS_PER_HOUR:
        return RefundOutcome(
            refund_amount=base_price,
            service_fee_withheld=service_fee,
            hours_until_class=hours,
            policy=RefundPolicy.FULL_REFUND,
            policy_basis=f">={cutoff_hours} hours before class: class price refunded",
        )

    return RefundOutcome(
        refund_amount=Money.zero(),
        service_fee_withheld=service_fee,
        hours_until_class=hours,
        policy=RefundPolicy.NO_REFUND,
        policy_basis=f"<{cutoff_hours} hours before class: no refund",
    )
