# backend/yugi/repositories/base_repository.py
"""
Store interfaces for the YUGI booking platform.

Persistence is injected: services depend on these protocols only, and the
in-memory and SQLAlchemy implementations are interchangeable. Records are
immutable dataclasses, so a read can never observe a half-applied write.
"""

from datetime import date, datetime
from typing import Any, List, Optional, Protocol

from ..models.booking import BookingStatus, EnhancedBooking
from ..models.settlement import BankAccount, SettlementEntry, WithdrawalRecord, WithdrawalStatus


class BookingRepository(Protocol):
    def add(self, enhanced: EnhancedBooking) -> EnhancedBooking:
        """Store a booking and its class snapshot together."""

    def get(self, booking_id: str) -> Optional[EnhancedBooking]:
        ...

    def list_by_status(self, status: BookingStatus) -> List[EnhancedBooking]:
        ...

    def list_for_user(self, user_id: str) -> List[EnhancedBooking]:
        ...

    def count_created_on(self, day: date) -> int:
        ...

    def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        **changes: Any,
    ) -> bool:
        """
        Atomically move ``expected -> new`` and apply ``changes``.

        Returns False, changing nothing, when the stored status is not
        ``expected`` or the booking does not exist.
        """


class SettlementRepository(Protocol):
    def add(self, entry: SettlementEntry) -> SettlementEntry:
        """Append an entry. Raises RepositoryException if the booking already has one."""

    def get_by_booking(self, booking_id: str) -> Optional[SettlementEntry]:
        ...

    def list_by_provider(self, provider_id: str) -> List[SettlementEntry]:
        ...

    def update(self, entry: SettlementEntry) -> SettlementEntry:
        ...


class BankAccountRepository(Protocol):
    def add(self, account: BankAccount) -> BankAccount:
        ...

    def get(self, account_id: str) -> Optional[BankAccount]:
        ...

    def list_by_provider(self, provider_id: str) -> List[BankAccount]:
        ...

    def remove(self, account_id: str) -> Optional[BankAccount]:
        ...

    def set_default(self, provider_id: str, account_id: Optional[str]) -> None:
        """Clear the provider's default and set ``account_id`` (if any) in one step."""


class WithdrawalRepository(Protocol):
    def add(self, record: WithdrawalRecord) -> WithdrawalRecord:
        ...

    def get(self, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        ...

    def list_by_provider(self, provider_id: str) -> List[WithdrawalRecord]:
        ...

    def update_status(
        self,
        withdrawal_id: str,
        expected: WithdrawalStatus,
        new: WithdrawalStatus,
        settled_at: Optional[datetime],
    ) -> bool:
        ...
