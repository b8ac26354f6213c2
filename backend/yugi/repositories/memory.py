# backend/yugi/repositories/memory.py
"""In-memory stores. Thread-safe; each store guards its dict with one lock."""

from dataclasses import replace
from datetime import date, datetime
from threading import Lock
from typing import Any, Dict, List, Optional

from ..core.exceptions import RepositoryException
from ..models.booking import BookingStatus, EnhancedBooking
from ..models.settlement import BankAccount, SettlementEntry, WithdrawalRecord, WithdrawalStatus


class InMemoryBookingRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._records: Dict[str, EnhancedBooking] = {}

    def add(self, enhanced: EnhancedBooking) -> EnhancedBooking:
        with self._lock:
            if enhanced.id in self._records:
                raise RepositoryException(f"Booking {enhanced.id} already exists")
            number = enhanced.booking.booking_number
            if any(r.booking.booking_number == number for r in self._records.values()):
                raise RepositoryException(f"Booking number {number} already exists")
            self._records[enhanced.id] = enhanced
        return enhanced

    def get(self, booking_id: str) -> Optional[EnhancedBooking]:
        with self._lock:
            return self._records.get(booking_id)

    def list_by_status(self, status: BookingStatus) -> List[EnhancedBooking]:
        with self._lock:
            return [r for r in self._records.values() if r.status is status]

    def list_for_user(self, user_id: str) -> List[EnhancedBooking]:
        with self._lock:
            records = [r for r in self._records.values() if r.booking.user_id == user_id]
        return sorted(records, key=lambda r: r.booking.start_time)

    def count_created_on(self, day: date) -> int:
        with self._lock:
            return sum(
                1
                for r in self._records.values()
                if r.booking.created_at is not None and r.booking.created_at.date() == day
            )

    def compare_and_set_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        new: BookingStatus,
        **changes: Any,
    ) -> bool:
        with self._lock:
            current = self._records.get(booking_id)
            if current is None or current.status is not expected:
                return False
            self._records[booking_id] = current.with_booking(status=new, **changes)
            return True


class InMemorySettlementRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: Dict[str, SettlementEntry] = {}

    def add(self, entry: SettlementEntry) -> SettlementEntry:
        with self._lock:
            if entry.booking_id in self._entries:
                raise RepositoryException(
                    f"Settlement entry for booking {entry.booking_id} already exists"
                )
            self._entries[entry.booking_id] = entry
        return entry

    def get_by_booking(self, booking_id: str) -> Optional[SettlementEntry]:
        with self._lock:
            return self._entries.get(booking_id)

    def list_by_provider(self, provider_id: str) -> List[SettlementEntry]:
        with self._lock:
            entries = [e for e in self._entries.values() if e.provider_id == provider_id]
        return sorted(entries, key=lambda e: e.completed_at)

    def update(self, entry: SettlementEntry) -> SettlementEntry:
        with self._lock:
            if entry.booking_id not in self._entries:
                raise RepositoryException(f"No settlement entry for booking {entry.booking_id}")
            self._entries[entry.booking_id] = entry
        return entry


class InMemoryBankAccountRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._accounts: Dict[str, BankAccount] = {}

    def add(self, account: BankAccount) -> BankAccount:
        with self._lock:
            if account.id in self._accounts:
                raise RepositoryException(f"Bank account {account.id} already exists")
            self._accounts[account.id] = account
        return account

    def get(self, account_id: str) -> Optional[BankAccount]:
        with self._lock:
            return self._accounts.get(account_id)

    def list_by_provider(self, provider_id: str) -> List[BankAccount]:
        with self._lock:
            return [a for a in self._accounts.values() if a.provider_id == provider_id]

    def remove(self, account_id: str) -> Optional[BankAccount]:
        with self._lock:
            return self._accounts.pop(account_id, None)

    def set_default(self, provider_id: str, account_id: Optional[str]) -> None:
        with self._lock:
            if account_id is not None:
                target = self._accounts.get(account_id)
                if target is None or target.provider_id != provider_id:
                    raise RepositoryException(
                        f"Bank account {account_id} does not belong to provider {provider_id}"
                    )
            for key, account in list(self._accounts.items()):
                if account.provider_id != provider_id:
                    continue
                wanted = key == account_id
                if account.is_default != wanted:
                    self._accounts[key] = replace(account, is_default=wanted)


class InMemoryWithdrawalRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._records: Dict[str, WithdrawalRecord] = {}

    def add(self, record: WithdrawalRecord) -> WithdrawalRecord:
        with self._lock:
            if record.id in self._records:
                raise RepositoryException(f"Withdrawal {record.id} already exists")
            self._records[record.id] = record
        return record

    def get(self, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        with self._lock:
            return self._records.get(withdrawal_id)

    def list_by_provider(self, provider_id: str) -> List[WithdrawalRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.provider_id == provider_id]
        return sorted(records, key=lambda r: r.requested_at)

    def update_status(
        self,
        withdrawal_id: str,
        expected: WithdrawalStatus,
        new: WithdrawalStatus,
        settled_at: Optional[datetime],
    ) -> bool:
        with self._lock:
            current = self._records.get(withdrawal_id)
            if current is None or current.status is not expected:
                return False
            self._records[withdrawal_id] = replace(current, status=new, settled_at=settled_at)
            return True
