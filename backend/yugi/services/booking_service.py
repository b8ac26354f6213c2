# backend/yugi/services/booking_service.py
"""
Booking lifecycle for the YUGI platform.

States: upcoming -> completed | cancelled. Both terminal states are final.

Every transition holds the booking's lock and commits through a
compare-and-swap on the stored status, so a cancel and a completion racing
on the same booking can never both succeed: whichever takes the lock first
decides, and the other sees the new status. Completion also holds the
provider's ledger lock so the status change and the settlement entry land
together. Events are emitted only after every lock is released.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Sequence, Tuple, Union

from ..core.clock import Clock, require_aware
from ..core.constants import (
    BOOKING_NUMBER_PREFIX,
    BOOKING_NUMBER_SEQUENCE_WIDTH,
    MAX_REASON_LENGTH,
    MAX_SPECIAL_REQUIREMENTS_LENGTH,
)
from ..core.exceptions import (
    AlreadyBookedError,
    AlreadyOccurredError,
    InvalidStateError,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.locks import LockManager, booking_lock_key
from ..core.ulid_helper import generate_ulid
from ..events.booking_events import BookingCancelled, BookingCompleted, BookingCreated
from ..events.publisher import NotificationSink
from ..models.booking import (
    Booking,
    BookingRequest,
    BookingStatus,
    CancelledBy,
    ClassSnapshot,
    EnhancedBooking,
)
from ..models.settlement import SettlementEntry
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.base_repository import BookingRepository
from .base import BaseService
from .refund_policy_engine import DEFAULT_REFUND_CUTOFF_HOURS, RefundOutcome, compute_refund
from .settlement_service import SettlementLedger

logger = logging.getLogger(__name__)


def booking_number_lock_key(created_at: datetime) -> str:
    return f"booking-number:{created_at.strftime('%y%m%d')}"


def format_booking_number(created_at: datetime, sequence: int) -> str:
    """``YUGI`` + yymmdd + zero-padded daily sequence, e.g. ``YUGI251019001``."""
    return (
        f"{BOOKING_NUMBER_PREFIX}{created_at.strftime('%y%m%d')}"
        f"{sequence:0{BOOKING_NUMBER_SEQUENCE_WIDTH}d}"
    )


class BookingService(BaseService):
    """
    Service layer for the booking lifecycle.

    Handles:
    - Booking creation with validation and booking numbers
    - Completion once the class has ended (driven by the completion sweep)
    - User and provider cancellation with refund calculation
    """

    def __init__(
        self,
        bookings: BookingRepository,
        ledger: SettlementLedger,
        *,
        clock: Clock,
        locks: LockManager,
        sink: NotificationSink,
        refund_cutoff_hours: int = DEFAULT_REFUND_CUTOFF_HOURS,
    ):
        super().__init__(clock, locks, sink)
        self.bookings = bookings
        self.ledger = ledger
        self.refund_cutoff_hours = refund_cutoff_hours

    def _now(self, now: Optional[datetime]) -> datetime:
        return self.clock.now() if now is None else require_aware(now, "now")

    def _load(self, booking_id: str) -> EnhancedBooking:
        enhanced = self.bookings.get(booking_id)
        if enhanced is None:
            raise NotFoundException(
                f"Booking {booking_id} not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return enhanced

    # Creation

    def _validate_request(
        self, request: BookingRequest, snapshot: ClassSnapshot, now: datetime
    ) -> None:
        if request.participant_count < 1:
            raise ValidationException(
                "At least one participant is required",
                code="INVALID_PARTICIPANTS",
                details={"participant_count": request.participant_count},
            )
        if snapshot.requires_child_selection and not request.selected_child_ids:
            raise ValidationException(
                "Please select at least one child for this class",
                code="CHILD_SELECTION_REQUIRED",
                details={"class_id": request.class_id},
            )
        if request.duration_seconds <= 0:
            raise ValidationException(
                "Class duration must be positive",
                code="INVALID_DURATION",
                details={"duration_seconds": request.duration_seconds},
            )
        start_time = require_aware(request.start_time, "start_time")
        if start_time <= now:
            raise ValidationException(
                "Cannot book a class that has already started",
                code="START_TIME_IN_PAST",
                details={"start_time": start_time.isoformat()},
            )
        if (
            request.special_requirements
            and len(request.special_requirements) > MAX_SPECIAL_REQUIREMENTS_LENGTH
        ):
            raise ValidationException(
                f"Special requirements must be at most {MAX_SPECIAL_REQUIREMENTS_LENGTH} characters",
                code="INVALID_SPECIAL_REQUIREMENTS",
            )
        if snapshot.base_price.amount < 0 or snapshot.service_fee.amount < 0:
            raise ValidationException("Class prices cannot be negative", code="INVALID_PRICE")

    @BaseService.measure_operation("create")
    def create(self, request: BookingRequest, snapshot: ClassSnapshot) -> EnhancedBooking:
        """
        Create an upcoming booking together with its class snapshot.

        Raises:
            ValidationException: bad participants, missing children, bad
                duration, or a start time that has already passed
            AlreadyBookedError: the user already holds an upcoming booking
                for this class
        """
        now = self.clock.now()
        self._validate_request(request, snapshot, now)

        # One lock per calendar day covers both the duplicate check and the
        # booking number sequence.
        with self.locks.hold(booking_number_lock_key(now)):
            duplicate = any(
                existing.booking.class_id == request.class_id
                and existing.status is BookingStatus.UPCOMING
                for existing in self.bookings.list_for_user(request.user_id)
            )
            if duplicate:
                raise AlreadyBookedError(request.user_id, request.class_id)

            sequence = self.bookings.count_created_on(now.date()) + 1
            booking = Booking(
                id=generate_ulid(),
                booking_number=format_booking_number(now, sequence),
                class_id=request.class_id,
                user_id=request.user_id,
                status=BookingStatus.UPCOMING,
                start_time=request.start_time,
                duration_seconds=request.duration_seconds,
                participant_count=request.participant_count,
                selected_child_ids=tuple(request.selected_child_ids),
                special_requirements=request.special_requirements,
                created_at=now,
            )
            enhanced = self.bookings.add(EnhancedBooking(booking=booking, snapshot=snapshot))

        prometheus_metrics.record_transition("created", "applied")
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            booking_number=booking.booking_number,
            provider_id=snapshot.provider_id,
        )
        self.emit(
            BookingCreated(
                booking_id=booking.id,
                booking_number=booking.booking_number,
                user_id=booking.user_id,
                provider_id=snapshot.provider_id,
                class_id=booking.class_id,
                start_time=booking.start_time,
                gross_amount=snapshot.gross_amount,
                created_at=now,
            )
        )
        return enhanced

    def create_booking(
        self,
        class_id: str,
        user_id: str,
        participants: int,
        children: Sequence[str],
        requirements: Optional[str],
        start_time: datetime,
        duration: Union[timedelta, int],
        class_snapshot: ClassSnapshot,
    ) -> EnhancedBooking:
        """Positional form of :meth:`create`."""
        duration_seconds = (
            int(duration.total_seconds()) if isinstance(duration, timedelta) else int(duration)
        )
        return self.create(
            BookingRequest(
                class_id=class_id,
                user_id=user_id,
                start_time=start_time,
                duration_seconds=duration_seconds,
                participant_count=participants,
                selected_child_ids=tuple(children),
                special_requirements=requirements,
            ),
            class_snapshot,
        )

    # Completion

    @BaseService.measure_operation("attempt_complete")
    def attempt_complete(self, booking_id: str, now: Optional[datetime] = None) -> bool:
        """
        Complete the booking if its class has ended.

        Returns False, without raising, when the booking is no longer
        upcoming or is not yet due. Calling it again on a completed booking
        never creates a second settlement entry.
        """
        now = self._now(now)

        with self.locks.hold(booking_lock_key(booking_id)):
            current = self._load(booking_id)
            if current.status.is_terminal:
                prometheus_metrics.record_transition("completed", "noop")
                return False
            if not current.booking.is_due(now):
                return False

            entry = self.ledger.build_entry(current, now)

            def transition() -> bool:
                return self.bookings.compare_and_set_status(
                    booking_id,
                    BookingStatus.UPCOMING,
                    BookingStatus.COMPLETED,
                    completed_at=now,
                    attended=True,
                )

            try:
                recorded = self.ledger.record_completion(entry, transition=transition)
            except RepositoryException:
                # The entry did not land; put the status back so the next sweep retries.
                self.bookings.compare_and_set_status(
                    booking_id,
                    BookingStatus.COMPLETED,
                    BookingStatus.UPCOMING,
                    completed_at=None,
                    attended=False,
                )
                raise

            if recorded is None:
                prometheus_metrics.record_transition("completed", "noop")
                return False

        prometheus_metrics.record_transition("completed", "applied")
        logger.info(
            "Booking %s completed; net %s held until %s",
            booking_id,
            recorded.net_amount,
            recorded.held_until.isoformat(),
        )
        self.emit(
            BookingCompleted(
                booking_id=booking_id,
                provider_id=recorded.provider_id,
                completed_at=now,
                net_amount=recorded.net_amount,
                held_until=recorded.held_until,
            )
        )
        return True

    def mark_completed(
        self, booking_id: str, now: Optional[datetime] = None
    ) -> Tuple[bool, EnhancedBooking, Optional[SettlementEntry]]:
        """
        Provider-initiated completion.

        Same rules as the sweep: nothing happens before the class has ended,
        and a completed booking keeps its one settlement entry. Returns
        whether this call completed it, the booking as it now stands and its
        settlement entry if it has one.
        """
        completed = self.attempt_complete(booking_id, now)
        enhanced = self.get(booking_id)
        entry = self.ledger.settlements.get_by_booking(booking_id)
        return completed, enhanced, entry

    # Cancellation

    @staticmethod
    def _clean_reason(reason: Optional[str]) -> Optional[str]:
        if reason is None:
            return None
        reason = reason.strip()
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationException(
                f"Cancellation reason must be at most {MAX_REASON_LENGTH} characters",
                code="INVALID_REASON",
            )
        return reason or None

    def _cancel(
        self,
        booking_id: str,
        now: Optional[datetime],
        reason: Optional[str],
        cancelled_by: CancelledBy,
    ) -> RefundOutcome:
        now = self._now(now)
        reason = self._clean_reason(reason)

        with self.locks.hold(booking_lock_key(booking_id)):
            current = self._load(booking_id)
            if current.status.is_terminal:
                prometheus_metrics.record_transition("cancelled", "rejected")
                raise InvalidStateError(
                    f"Booking is already {current.status.value}",
                    current_state=current.status.value,
                    details={"booking_id": booking_id},
                )

            try:
                outcome = compute_refund(
                    now,
                    current.booking.start_time,
                    current.snapshot.base_price,
                    current.snapshot.service_fee,
                    cancelled_by,
                    cutoff_hours=self.refund_cutoff_hours,
                    booking_id=booking_id,
                )
            except AlreadyOccurredError:
                prometheus_metrics.record_transition("cancelled", "rejected")
                raise

            swapped = self.bookings.compare_and_set_status(
                booking_id,
                BookingStatus.UPCOMING,
                BookingStatus.CANCELLED,
                cancelled_at=now,
                cancelled_by=cancelled_by,
                cancellation_reason=reason,
                refund_amount=outcome.refund_amount,
            )
            if not swapped:
                latest = self._load(booking_id)
                prometheus_metrics.record_transition("cancelled", "rejected")
                raise InvalidStateError(
                    f"Booking is already {latest.status.value}",
                    current_state=latest.status.value,
                    details={"booking_id": booking_id},
                )

        prometheus_metrics.record_transition("cancelled", "applied")
        logger.info(
            "Booking %s cancelled by %s: refund %s (%s)",
            booking_id,
            cancelled_by.value,
            outcome.refund_amount,
            outcome.policy.value,
        )
        self.emit(
            BookingCancelled(
                booking_id=booking_id,
                user_id=current.booking.user_id,
                provider_id=current.provider_id,
                cancelled_by=cancelled_by.value,
                cancelled_at=now,
                refund_amount=outcome.refund_amount,
                reason=reason,
            )
        )
        return outcome

    @BaseService.measure_operation("cancel")
    def cancel(
        self, booking_id: str, now: Optional[datetime] = None, reason: Optional[str] = None
    ) -> RefundOutcome:
        """
        Cancel on the user's behalf.

        Raises:
            InvalidStateError: the booking is completed or cancelled
            AlreadyOccurredError: the class has already started
        """
        return self._cancel(booking_id, now, reason, CancelledBy.USER)

    @BaseService.measure_operation("cancel_by_provider")
    def cancel_by_provider(
        self, booking_id: str, now: Optional[datetime] = None, reason: Optional[str] = None
    ) -> RefundOutcome:
        """Cancel on the provider's behalf; the class price is always refunded."""
        return self._cancel(booking_id, now, reason, CancelledBy.PROVIDER)

    # Queries

    def get(self, booking_id: str) -> EnhancedBooking:
        return self._load(booking_id)

    def list_upcoming(self) -> List[EnhancedBooking]:
        return self.bookings.list_by_status(BookingStatus.UPCOMING)

    def list_for_user(self, user_id: str) -> List[EnhancedBooking]:
        return self.bookings.list_for_user(user_id)
