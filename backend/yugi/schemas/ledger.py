# backend/yugi/schemas/ledger.py
"""Provider ledger, dispute, withdrawal and bank account schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..models.settlement import (
    BankAccount,
    LedgerSummary,
    PendingRelease,
    SettlementEntry,
    WithdrawalRecord,
)
from .base import AmountInput, StandardizedModel, StrictModel, money_str


class LedgerSummaryResponse(StandardizedModel):
    provider_id: str
    as_of: datetime
    total_earnings: str
    commission_paid: str
    held_funds: str
    available_balance: str
    total_withdrawn: str
    forfeited_funds: str

    @classmethod
    def from_domain(cls, summary: LedgerSummary) -> "LedgerSummaryResponse":
        return cls(**summary.to_payload())


class PendingReleaseResponse(StandardizedModel):
    booking_id: str
    net_amount: str
    held_until: datetime
    dispute_open: bool
    remaining_seconds: int

    @classmethod
    def from_domain(cls, release: PendingRelease) -> "PendingReleaseResponse":
        return cls(**release.to_payload())


class PendingReleasesResponse(StandardizedModel):
    provider_id: str
    releases: List[PendingReleaseResponse]


class SettlementEntryResponse(StandardizedModel):
    booking_id: str
    provider_id: str
    gross_amount: str
    commission_amount: str
    net_amount: str
    completed_at: datetime
    held_until: datetime
    dispute_open: bool
    forfeited: bool
    dispute_opened_at: Optional[datetime] = None
    dispute_resolved_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, entry: SettlementEntry) -> "SettlementEntryResponse":
        return cls(
            booking_id=entry.booking_id,
            provider_id=entry.provider_id,
            gross_amount=money_str(entry.gross_amount),
            commission_amount=money_str(entry.commission_amount),
            net_amount=money_str(entry.net_amount),
            completed_at=entry.completed_at,
            held_until=entry.held_until,
            dispute_open=entry.dispute_open,
            forfeited=entry.forfeited,
            dispute_opened_at=entry.dispute_opened_at,
            dispute_resolved_at=entry.dispute_resolved_at,
        )


class DisputeResolveRequest(StrictModel):
    outcome: str = Field(..., description="'upheld' or 'rejected'")


class WithdrawalCreate(StrictModel):
    amount: AmountInput
    bank_account_id: Optional[str] = None


class WithdrawalResponse(StandardizedModel):
    id: str
    provider_id: str
    bank_account_id: str
    amount: str
    requested_at: datetime
    status: str
    settled_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, record: WithdrawalRecord) -> "WithdrawalResponse":
        return cls(
            id=record.id,
            provider_id=record.provider_id,
            bank_account_id=record.bank_account_id,
            amount=money_str(record.amount),
            requested_at=record.requested_at,
            status=record.status.value,
            settled_at=record.settled_at,
        )


class BankAccountCreate(StrictModel):
    account_name: str
    account_number: str
    sort_code: str
    bank_name: str
    make_default: bool = False


class BankAccountResponse(StandardizedModel):
    id: str
    provider_id: str
    account_name: str
    account_number: str = Field(..., description="Masked; only the last four digits are shown")
    sort_code: str
    bank_name: str
    is_default: bool

    @classmethod
    def from_domain(cls, account: BankAccount) -> "BankAccountResponse":
        return cls(
            id=account.id,
            provider_id=account.provider_id,
            account_name=account.account_name,
            account_number=account.masked_account_number,
            sort_code=account.sort_code,
            bank_name=account.bank_name,
            is_default=account.is_default,
        )
