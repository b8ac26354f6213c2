# backend/yugi/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.

Endpoints:
    POST /                              → Create a booking
    GET /?user_id=...                   → List a user's bookings
    GET /{booking_id}                   → Booking details
    POST /{booking_id}/complete         → Provider marks the class completed
    POST /{booking_id}/cancel           → Cancel on the user's behalf
    POST /{booking_id}/provider-cancel  → Cancel on the provider's behalf
"""

import asyncio
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_booking_service
from ...core.exceptions import DomainException
from ...schemas.booking import (
    BookingCancelRequest,
    BookingCompletionResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    RefundOutcomeResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Class already booked by this user"}},
)
async def create_booking(
    payload: BookingCreate,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    """Create an upcoming booking against a snapshot of the class."""
    try:
        enhanced = await asyncio.to_thread(
            booking_service.create,
            payload.to_domain(),
            payload.class_snapshot.to_domain(),
        )
        return BookingCreateResponse.from_domain(enhanced)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    user_id: str = Query(..., min_length=1),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """List a user's bookings, earliest class first."""
    bookings = await asyncio.to_thread(booking_service.list_for_user, user_id)
    return [BookingResponse.from_domain(b) for b in bookings]


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        enhanced = await asyncio.to_thread(booking_service.get, booking_id)
        return BookingResponse.from_domain(enhanced)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/cancel",
    response_model=RefundOutcomeResponse,
    responses={
        404: {"description": "Booking not found"},
        422: {"description": "Booking not upcoming, or class already started"},
        503: {"description": "Booking is busy; retry"},
    },
)
async def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancelRequest] = Body(default=None),
    booking_service: BookingService = Depends(get_booking_service),
) -> RefundOutcomeResponse:
    """
    Cancel a booking.

    At least 24 hours before the class the class price is refunded; inside
    that window nothing is. The service fee is never refunded.
    """
    reason = payload.reason if payload else None
    try:
        outcome = await asyncio.to_thread(booking_service.cancel, booking_id, None, reason)
        return RefundOutcomeResponse.from_domain(outcome)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/provider-cancel",
    response_model=RefundOutcomeResponse,
    responses={404: {"description": "Booking not found"}},
)
async def provider_cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancelRequest] = Body(default=None),
    booking_service: BookingService = Depends(get_booking_service),
) -> RefundOutcomeResponse:
    """Provider cancels the class; the user gets the class price back."""
    reason = payload.reason if payload else None
    try:
        outcome = await asyncio.to_thread(
            booking_service.cancel_by_provider, booking_id, None, reason
        )
        return RefundOutcomeResponse.from_domain(outcome)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/complete",
    response_model=BookingCompletionResponse,
    responses={
        404: {"description": "Booking not found"},
        503: {"description": "Booking is busy; retry"},
    },
)
async def complete_booking(
    booking_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCompletionResponse:
    """
    Provider marks the class as held, starting the 72 hour holding period.

    Before the class has ended this is a no-op that returns the booking
    unchanged. Repeating it on a completed booking returns the existing
    settlement entry.
    """
    try:
        completed, enhanced, entry = await asyncio.to_thread(
            booking_service.mark_completed, booking_id, None
        )
        return BookingCompletionResponse.from_domain(completed, enhanced, entry)
    except DomainException as e:
        handle_domain_exception(e)
