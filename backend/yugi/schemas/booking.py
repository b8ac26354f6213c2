# backend/yugi/schemas/booking.py
"""
Booking request and response schemas.

Field-level checks (participants, children, duration, start time) live in
BookingService so the HTTP surface and the library API reject the same
inputs with the same error codes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..core.config import settings
from ..core.constants import MAX_REASON_LENGTH
from ..models.booking import BookingRequest, ClassSnapshot, EnhancedBooking
from ..models.settlement import SettlementEntry
from ..services.refund_policy_engine import RefundOutcome
from .base import AmountInput, StandardizedModel, StrictModel, money_str, parse_amount
from .ledger import SettlementEntryResponse


class ClassSnapshotIn(StrictModel):
    provider_id: str = Field(..., min_length=1)
    class_name: str = Field(..., min_length=1)
    base_price: AmountInput
    service_fee: Optional[AmountInput] = None
    location: str = ""
    requires_child_selection: bool = False

    def to_domain(self) -> ClassSnapshot:
        return ClassSnapshot(
            provider_id=self.provider_id,
            class_name=self.class_name,
            base_price=parse_amount(self.base_price, "base_price"),
            service_fee=parse_amount(
                settings.service_fee if self.service_fee is None else self.service_fee,
                "service_fee",
            ),
            location=self.location,
            requires_child_selection=self.requires_child_selection,
        )


class BookingCreate(StrictModel):
    class_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    start_time: datetime
    duration_seconds: int
    participant_count: int = 1
    selected_child_ids: List[str] = Field(default_factory=list)
    special_requirements: Optional[str] = None
    class_snapshot: ClassSnapshotIn

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            class_id=self.class_id,
            user_id=self.user_id,
            start_time=self.start_time,
            duration_seconds=self.duration_seconds,
            participant_count=self.participant_count,
            selected_child_ids=tuple(self.selected_child_ids),
            special_requirements=self.special_requirements,
        )


class BookingCancelRequest(StrictModel):
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


class BookingCreateResponse(StandardizedModel):
    id: str
    booking_number: str
    status: str
    gross_amount: str

    @classmethod
    def from_domain(cls, enhanced: EnhancedBooking) -> "BookingCreateResponse":
        return cls(
            id=enhanced.id,
            booking_number=enhanced.booking.booking_number,
            status=enhanced.status.value,
            gross_amount=money_str(enhanced.gross_amount),
        )


class BookingResponse(StandardizedModel):
    id: str
    booking_number: str
    class_id: str
    user_id: str
    provider_id: str
    class_name: str
    location: str
    status: str
    start_time: datetime
    end_time: datetime
    duration_seconds: int
    participant_count: int
    selected_child_ids: List[str]
    special_requirements: Optional[str] = None
    attended: bool
    base_price: str
    service_fee: str
    gross_amount: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_amount: Optional[str] = None

    @classmethod
    def from_domain(cls, enhanced: EnhancedBooking) -> "BookingResponse":
        b, s = enhanced.booking, enhanced.snapshot
        return cls(
            id=b.id,
            booking_number=b.booking_number,
            class_id=b.class_id,
            user_id=b.user_id,
            provider_id=s.provider_id,
            class_name=s.class_name,
            location=s.location,
            status=b.status.value,
            start_time=b.start_time,
            end_time=b.end_time,
            duration_seconds=b.duration_seconds,
            participant_count=b.participant_count,
            selected_child_ids=list(b.selected_child_ids),
            special_requirements=b.special_requirements,
            attended=b.attended,
            base_price=money_str(s.base_price),
            service_fee=money_str(s.service_fee),
            gross_amount=money_str(s.gross_amount),
            created_at=b.created_at,
            completed_at=b.completed_at,
            cancelled_at=b.cancelled_at,
            cancelled_by=b.cancelled_by.value if b.cancelled_by else None,
            cancellation_reason=b.cancellation_reason,
            refund_amount=money_str(b.refund_amount) if b.refund_amount is not None else None,
        )


class RefundOutcomeResponse(StandardizedModel):
    refund_amount: str
    service_fee_withheld: str
    hours_until_class: float
    policy: str
    policy_basis: str

    @classmethod
    def from_domain(cls, outcome: RefundOutcome) -> "RefundOutcomeResponse":
        return cls(**outcome.to_payload())


class BookingCompletionResponse(StandardizedModel):
    """``completed`` is true only when this request moved the booking to completed."""

    booking_id: str
    completed: bool
    status: str
    settlement: Optional[SettlementEntryResponse] = None

    @classmethod
    def from_domain(
        cls, completed: bool, enhanced: EnhancedBooking, entry: Optional[SettlementEntry]
    ) -> "BookingCompletionResponse":
        return cls(
            booking_id=enhanced.id,
            completed=completed,
            status=enhanced.status.value,
            settlement=SettlementEntryResponse.from_domain(entry) if entry else None,
        )
