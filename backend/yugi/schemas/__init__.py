"""Pydantic request/response schemas for the HTTP API."""

from .booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    ClassSnapshotIn,
    RefundOutcomeResponse,
)
from .ledger import (
    BankAccountCreate,
    BankAccountResponse,
    DisputeResolveRequest,
    LedgerSummaryResponse,
    PendingReleaseResponse,
    PendingReleasesResponse,
    SettlementEntryResponse,
    WithdrawalCreate,
    WithdrawalResponse,
)

__all__ = [
    "BankAccountCreate",
    "BankAccountResponse",
    "BookingCancelRequest",
    "BookingCreate",
    "BookingCreateResponse",
    "BookingResponse",
    "ClassSnapshotIn",
    "DisputeResolveRequest",
    "LedgerSummaryResponse",
    "PendingReleaseResponse",
    "PendingReleasesResponse",
    "RefundOutcomeResponse",
    "SettlementEntryResponse",
    "WithdrawalCreate",
    "WithdrawalResponse",
]
