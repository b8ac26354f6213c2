"""
Domain records for the YUGI booking platform.

- Booking lifecycle: Booking, ClassSnapshot, EnhancedBooking
- Settlement: SettlementEntry, BankAccount, WithdrawalRecord, LedgerSummary
"""

from .booking import (
    Booking,
    BookingRequest,
    BookingStatus,
    CancelledBy,
    ClassSnapshot,
    EnhancedBooking,
)
from .settlement import (
    BankAccount,
    DisputeOutcome,
    LedgerSummary,
    PendingRelease,
    SettlementEntry,
    WithdrawalRecord,
    WithdrawalStatus,
)

__all__ = [
    "BankAccount",
    "Booking",
    "BookingRequest",
    "BookingStatus",
    "CancelledBy",
    "ClassSnapshot",
    "DisputeOutcome",
    "EnhancedBooking",
    "LedgerSummary",
    "PendingRelease",
    "SettlementEntry",
    "WithdrawalRecord",
    "WithdrawalStatus",
]
