# backend/yugi/routes/v1/disputes.py
"""
Dispute routes - API v1

Endpoints:
    POST /{booking_id}          → Open a dispute on a completed booking
    POST /{booking_id}/resolve  → Resolve it as 'upheld' or 'rejected'
"""

import asyncio

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_settlement_ledger
from ...core.exceptions import DomainException
from ...schemas.ledger import DisputeResolveRequest, SettlementEntryResponse
from ...services.settlement_service import SettlementLedger
from .bookings import handle_domain_exception

router = APIRouter(tags=["disputes-v1"])


@router.post(
    "/{booking_id}",
    response_model=SettlementEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "No settlement entry for this booking"},
        422: {"description": "Dispute already open, or entry forfeited"},
    },
)
async def open_dispute(
    booking_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> SettlementEntryResponse:
    """Hold the booking's net amount out of the provider balance until resolved."""
    try:
        entry = await asyncio.to_thread(ledger.open_dispute, booking_id)
        return SettlementEntryResponse.from_domain(entry)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/resolve",
    response_model=SettlementEntryResponse,
    responses={
        400: {"description": "Unknown outcome"},
        422: {"description": "No open dispute"},
    },
)
async def resolve_dispute(
    booking_id: str,
    payload: DisputeResolveRequest,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> SettlementEntryResponse:
    try:
        entry = await asyncio.to_thread(ledger.resolve_dispute, booking_id, payload.outcome)
        return SettlementEntryResponse.from_domain(entry)
    except DomainException as e:
        handle_domain_exception(e)
