# backend/yugi/models/settlement.py
"""Provider settlement records: ledger entries, bank accounts, withdrawals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from ..core.money import Money


class DisputeOutcome(str, Enum):
    UPHELD = "upheld"  # Provider forfeits the entry
    REJECTED = "rejected"  # Entry returns to normal holding treatment


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SettlementEntry:
    """One per completed booking. Amounts are fixed at creation."""

    booking_id: str
    provider_id: str
    gross_amount: Money
    commission_amount: Money
    net_amount: Money
    completed_at: datetime
    held_until: datetime
    dispute_open: bool = False
    forfeited: bool = False
    dispute_opened_at: Optional[datetime] = None
    dispute_resolved_at: Optional[datetime] = None

    def is_released(self, now: datetime) -> bool:
        return now >= self.held_until and not self.dispute_open and not self.forfeited

    def is_held(self, now: datetime) -> bool:
        return not self.forfeited and (self.dispute_open or now < self.held_until)


@dataclass(frozen=True)
class BankAccount:
    id: str
    provider_id: str
    account_name: str
    account_number: str
    sort_code: str
    bank_name: str
    is_default: bool = False

    @property
    def masked_account_number(self) -> str:
        return f"****{self.account_number[-4:]}"


@dataclass(frozen=True)
class WithdrawalRecord:
    id: str
    provider_id: str
    bank_account_id: str
    amount: Money
    requested_at: datetime
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    settled_at: Optional[datetime] = None

    @property
    def counts_against_balance(self) -> bool:
        # A failed transfer hands the money back.
        return self.status is not WithdrawalStatus.FAILED


@dataclass(frozen=True)
class PendingRelease:
    booking_id: str
    net_amount: Money
    held_until: datetime
    dispute_open: bool
    remaining: timedelta

    def to_payload(self) -> Dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "net_amount": self.net_amount.to_json(),
            "held_until": self.held_until.isoformat(),
            "dispute_open": self.dispute_open,
            "remaining_seconds": int(self.remaining.total_seconds()),
        }


@dataclass(frozen=True)
class LedgerSummary:
    provider_id: str
    as_of: datetime
    total_earnings: Money
    commission_paid: Money
    held_funds: Money
    available_balance: Money
    total_withdrawn: Money
    forfeited_funds: Money

    def to_payload(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "as_of": self.as_of.isoformat(),
            "total_earnings": self.total_earnings.to_json(),
            "commission_paid": self.commission_paid.to_json(),
            "held_funds": self.held_funds.to_json(),
            "available_balance": self.available_balance.to_json(),
            "total_withdrawn": self.total_withdrawn.to_json(),
            "forfeited_funds": self.forfeited_funds.to_json(),
        }
