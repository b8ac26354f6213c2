# backend/yugi/services/settlement_service.py
"""
Settlement Ledger for YUGI providers.

Turns completed bookings into settlement entries and answers "how much can
this provider withdraw right now". Balances are derived from the stored
entries and withdrawals on every read, never cached, so a balance can only
change through an entry or withdrawal write. Every write holds the
provider's lock.

Key rules:
- Commission is computed once per entry (round-half-up) and net is
  gross minus commission, so the three amounts always reconcile.
- Net funds are held for the holding period after completion and for as
  long as a dispute is open. An upheld dispute forfeits the entry.
- Pending and completed withdrawals both count against the balance; a
  failed withdrawal gives its amount back.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
import logging
import re
from typing import Callable, List, Optional, Tuple, Union

from ..core.clock import Clock, require_aware
from ..core.constants import ACCOUNT_NUMBER_DIGITS, SORT_CODE_DIGITS
from ..core.exceptions import (
    AccountInUseError,
    InsufficientFundsError,
    InvalidStateError,
    NoDefaultAccountError,
    NotFoundException,
    ValidationException,
)
from ..core.locks import LockManager, provider_lock_key
from ..core.money import Money, MoneyLike
from ..core.ulid_helper import generate_ulid
from ..events.booking_events import DisputeOpened, DisputeResolved, WithdrawalRequested
from ..events.publisher import NotificationSink
from ..models.booking import EnhancedBooking
from ..models.settlement import (
    BankAccount,
    DisputeOutcome,
    LedgerSummary,
    PendingRelease,
    SettlementEntry,
    WithdrawalRecord,
    WithdrawalStatus,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.base_repository import (
    BankAccountRepository,
    SettlementRepository,
    WithdrawalRepository,
)
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_COMMISSION_RATE = Decimal("0.10")
DEFAULT_HOLDING_PERIOD = timedelta(hours=72)

_SEPARATORS = re.compile(r"[\s-]")


@dataclass(frozen=True)
class _Totals:
    total_earnings: Money
    commission_paid: Money
    held_funds: Money
    released_funds: Money
    forfeited_funds: Money
    total_withdrawn: Money

    @property
    def available_balance(self) -> Money:
        return self.released_funds - self.total_withdrawn


def _normalize_sort_code(raw: str) -> str:
    digits = _SEPARATORS.sub("", raw or "")
    if len(digits) != SORT_CODE_DIGITS or not digits.isdigit():
        raise ValidationException(
            "Sort code must be 6 digits",
            code="INVALID_SORT_CODE",
            details={"sort_code": raw},
        )
    return f"{digits[0:2]}-{digits[2:4]}-{digits[4:6]}"


def _normalize_account_number(raw: str) -> str:
    digits = _SEPARATORS.sub("", raw or "")
    if len(digits) != ACCOUNT_NUMBER_DIGITS or not digits.isdigit():
        raise ValidationException(
            "Account number must be 8 digits",
            code="INVALID_ACCOUNT_NUMBER",
        )
    return digits


class SettlementLedger(BaseService):
    """Per-provider settlement entries, disputes, bank accounts and withdrawals."""

    def __init__(
        self,
        settlements: SettlementRepository,
        accounts: BankAccountRepository,
        withdrawals: WithdrawalRepository,
        *,
        clock: Clock,
        locks: LockManager,
        sink: NotificationSink,
        commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
        holding_period: timedelta = DEFAULT_HOLDING_PERIOD,
    ):
        super().__init__(clock, locks, sink)
        self.settlements = settlements
        self.accounts = accounts
        self.withdrawals = withdrawals
        self.commission_rate = commission_rate
        self.holding_period = holding_period

    def _now(self, now: Optional[datetime]) -> datetime:
        return self.clock.now() if now is None else require_aware(now, "now")

    # Entries

    def build_entry(self, enhanced: EnhancedBooking, completed_at: datetime) -> SettlementEntry:
        """Price a completed booking from its snapshot. Commission is computed exactly once."""
        completed_at = require_aware(completed_at, "completed_at")
        gross = enhanced.gross_amount
        commission = gross.percentage(self.commission_rate, context="commission")
        return SettlementEntry(
            booking_id=enhanced.id,
            provider_id=enhanced.provider_id,
            gross_amount=gross,
            commission_amount=commission,
            net_amount=gross - commission,
            completed_at=completed_at,
            held_until=completed_at + self.holding_period,
        )

    @BaseService.measure_operation("record_completion")
    def record_completion(
        self,
        entry: SettlementEntry,
        transition: Optional[Callable[[], bool]] = None,
    ) -> Optional[SettlementEntry]:
        """
        Append ``entry`` under the provider lock.

        ``transition`` runs first, inside the same lock; if it returns a falsy
        value nothing is appended and None is returned. A booking that already
        has an entry gets the existing one back, never a second.
        """
        if entry.gross_amount != entry.commission_amount + entry.net_amount:
            raise ValidationException(
                "Settlement amounts do not reconcile",
                code="UNRECONCILED_ENTRY",
                details={"booking_id": entry.booking_id},
            )

        with self.locks.hold(provider_lock_key(entry.provider_id)):
            if transition is not None and not transition():
                prometheus_metrics.record_ledger_operation("record_completion", "skipped")
                return None

            existing = self.settlements.get_by_booking(entry.booking_id)
            if existing is not None:
                logger.info("Settlement entry already recorded for booking %s", entry.booking_id)
                prometheus_metrics.record_ledger_operation("record_completion", "duplicate")
                return existing

            self.settlements.add(entry)

        prometheus_metrics.record_ledger_operation("record_completion")
        logger.info(
            "Recorded settlement for booking %s: gross=%s commission=%s net=%s held_until=%s",
            entry.booking_id,
            entry.gross_amount,
            entry.commission_amount,
            entry.net_amount,
            entry.held_until.isoformat(),
        )
        return entry

    def get_entry(self, booking_id: str) -> SettlementEntry:
        entry = self.settlements.get_by_booking(booking_id)
        if entry is None:
            raise NotFoundException(
                f"No settlement entry for booking {booking_id}",
                code="SETTLEMENT_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return entry

    def list_entries(self, provider_id: str) -> List[SettlementEntry]:
        return self.settlements.list_by_provider(provider_id)

    # Disputes

    @BaseService.measure_operation("open_dispute")
    def open_dispute(self, booking_id: str, now: Optional[datetime] = None) -> SettlementEntry:
        now = self._now(now)
        provider_id = self.get_entry(booking_id).provider_id

        with self.locks.hold(provider_lock_key(provider_id)):
            entry = self.get_entry(booking_id)
            if entry.forfeited:
                raise InvalidStateError(
                    "This entry was forfeited by an upheld dispute",
                    current_state="forfeited",
                    details={"booking_id": booking_id},
                )
            if entry.dispute_open:
                raise InvalidStateError(
                    "A dispute is already open for this booking",
                    current_state="disputed",
                    details={"booking_id": booking_id},
                )
            updated = self.settlements.update(
                replace(entry, dispute_open=True, dispute_opened_at=now)
            )

        prometheus_metrics.record_ledger_operation("open_dispute")
        logger.info("Dispute opened for booking %s (provider %s)", booking_id, provider_id)
        self.emit(
            DisputeOpened(
                booking_id=booking_id,
                provider_id=provider_id,
                amount=updated.net_amount,
                opened_at=now,
            )
        )
        return updated

    @BaseService.measure_operation("resolve_dispute")
    def resolve_dispute(
        self,
        booking_id: str,
        outcome: Union[DisputeOutcome, str],
        now: Optional[datetime] = None,
    ) -> SettlementEntry:
        now = self._now(now)
        try:
            outcome = DisputeOutcome(outcome)
        except ValueError as exc:
            raise ValidationException(
                f"Unknown dispute outcome: {outcome}",
                code="INVALID_OUTCOME",
                details={"allowed": [o.value for o in DisputeOutcome]},
            ) from exc

        provider_id = self.get_entry(booking_id).provider_id
        with self.locks.hold(provider_lock_key(provider_id)):
            entry = self.get_entry(booking_id)
            if not entry.dispute_open:
                raise InvalidStateError(
                    "There is no open dispute for this booking",
                    current_state="forfeited" if entry.forfeited else "settled",
                    details={"booking_id": booking_id},
                )
            updated = self.settlements.update(
                replace(
                    entry,
                    dispute_open=False,
                    forfeited=outcome is DisputeOutcome.UPHELD,
                    dispute_resolved_at=now,
                )
            )

        prometheus_metrics.record_ledger_operation("resolve_dispute", outcome.value)
        logger.info("Dispute for booking %s resolved: %s", booking_id, outcome.value)
        self.emit(
            DisputeResolved(
                booking_id=booking_id,
                provider_id=provider_id,
                outcome=outcome.value,
                amount=updated.net_amount,
                resolved_at=now,
            )
        )
        return updated

    # Balances

    def _totals(self, provider_id: str, now: datetime) -> _Totals:
        entries = self.settlements.list_by_provider(provider_id)
        withdrawals = self.withdrawals.list_by_provider(provider_id)
        return _Totals(
            total_earnings=Money.total(e.gross_amount for e in entries),
            commission_paid=Money.total(e.commission_amount for e in entries),
            held_funds=Money.total(e.net_amount for e in entries if e.is_held(now)),
            released_funds=Money.total(e.net_amount for e in entries if e.is_released(now)),
            forfeited_funds=Money.total(e.net_amount for e in entries if e.forfeited),
            total_withdrawn=Money.total(w.amount for w in withdrawals if w.counts_against_balance),
        )

    def available_balance(self, provider_id: str, now: Optional[datetime] = None) -> Money:
        """Released net funds minus pending and completed withdrawals."""
        return self._totals(provider_id, self._now(now)).available_balance

    @BaseService.measure_operation("ledger_summary")
    def ledger_summary(self, provider_id: str, now: Optional[datetime] = None) -> LedgerSummary:
        now = self._now(now)
        totals = self._totals(provider_id, now)
        return LedgerSummary(
            provider_id=provider_id,
            as_of=now,
            total_earnings=totals.total_earnings,
            commission_paid=totals.commission_paid,
            held_funds=totals.held_funds,
            available_balance=totals.available_balance,
            total_withdrawn=totals.total_withdrawn,
            forfeited_funds=totals.forfeited_funds,
        )

    def pending_releases(
        self, provider_id: str, now: Optional[datetime] = None
    ) -> List[PendingRelease]:
        """Held entries, soonest release first."""
        now = self._now(now)
        held = [e for e in self.settlements.list_by_provider(provider_id) if e.is_held(now)]
        held.sort(key=lambda e: e.held_until)
        return [
            PendingRelease(
                booking_id=e.booking_id,
                net_amount=e.net_amount,
                held_until=e.held_until,
                dispute_open=e.dispute_open,
                remaining=max(e.held_until - now, timedelta(0)),
            )
            for e in held
        ]

    # Withdrawals

    @staticmethod
    def _coerce_amount(amount: MoneyLike) -> Money:
        try:
            value = Money.parse(amount)
        except (TypeError, ValueError) as exc:
            raise ValidationException(
                "Withdrawal amount must be a decimal amount",
                code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            ) from exc
        if not value.is_positive():
            raise ValidationException(
                "Withdrawal amount must be greater than zero",
                code="INVALID_AMOUNT",
                details={"amount": value.to_json()},
            )
        return value

    def _resolve_account(self, provider_id: str, bank_account_id: Optional[str]) -> BankAccount:
        if bank_account_id is None:
            account = self.default_account(provider_id)
            if account is None:
                raise NoDefaultAccountError(provider_id)
            return account
        account = self.accounts.get(bank_account_id)
        if account is None or account.provider_id != provider_id:
            raise NoDefaultAccountError(provider_id, bank_account_id)
        return account

    @BaseService.measure_operation("request_withdrawal")
    def request_withdrawal(
        self,
        provider_id: str,
        bank_account_id: Optional[str],
        amount: MoneyLike,
        now: Optional[datetime] = None,
    ) -> WithdrawalRecord:
        """
        Reserve ``amount`` for transfer to a bank account.

        The pending record lowers the available balance as soon as it is
        stored, before any transfer confirmation arrives.
        """
        now = self._now(now)
        value = self._coerce_amount(amount)

        with self.locks.hold(provider_lock_key(provider_id)):
            account = self._resolve_account(provider_id, bank_account_id)
            available = self._totals(provider_id, now).available_balance
            if value > available:
                prometheus_metrics.record_ledger_operation("request_withdrawal", "insufficient")
                raise InsufficientFundsError(value.to_json(), available.to_json())

            record = self.withdrawals.add(
                WithdrawalRecord(
                    id=generate_ulid(),
                    provider_id=provider_id,
                    bank_account_id=account.id,
                    amount=value,
                    requested_at=now,
                )
            )

        prometheus_metrics.record_ledger_operation("request_withdrawal")
        logger.info(
            "Withdrawal %s requested: provider=%s amount=%s account=%s",
            record.id,
            provider_id,
            value,
            account.masked_account_number,
        )
        self.emit(
            WithdrawalRequested(
                withdrawal_id=record.id,
                provider_id=provider_id,
                bank_account_id=account.id,
                amount=value,
                requested_at=now,
            )
        )
        return record

    def _settle_withdrawal(
        self, withdrawal_id: str, new: WithdrawalStatus, now: Optional[datetime]
    ) -> WithdrawalRecord:
        now = self._now(now)
        record = self.withdrawals.get(withdrawal_id)
        if record is None:
            raise NotFoundException(
                f"Withdrawal {withdrawal_id} not found",
                code="WITHDRAWAL_NOT_FOUND",
                details={"withdrawal_id": withdrawal_id},
            )

        with self.locks.hold(provider_lock_key(record.provider_id)):
            if not self.withdrawals.update_status(
                withdrawal_id, WithdrawalStatus.PENDING, new, now
            ):
                current = self.withdrawals.get(withdrawal_id)
                state = current.status.value if current else "unknown"
                raise InvalidStateError(
                    f"Withdrawal is already {state}",
                    current_state=state,
                    details={"withdrawal_id": withdrawal_id},
                )

        prometheus_metrics.record_ledger_operation("settle_withdrawal", new.value)
        logger.info("Withdrawal %s marked %s", withdrawal_id, new.value)
        return replace(record, status=new, settled_at=now)

    def complete_withdrawal(
        self, withdrawal_id: str, now: Optional[datetime] = None
    ) -> WithdrawalRecord:
        return self._settle_withdrawal(withdrawal_id, WithdrawalStatus.COMPLETED, now)

    def fail_withdrawal(self, withdrawal_id: str, now: Optional[datetime] = None) -> WithdrawalRecord:
        """Mark a transfer as failed; its amount becomes available again."""
        return self._settle_withdrawal(withdrawal_id, WithdrawalStatus.FAILED, now)

    def list_withdrawals(self, provider_id: str) -> List[WithdrawalRecord]:
        return self.withdrawals.list_by_provider(provider_id)

    # Bank accounts

    def _get_account(self, provider_id: str, account_id: str) -> BankAccount:
        account = self.accounts.get(account_id)
        if account is None or account.provider_id != provider_id:
            raise NotFoundException(
                f"Bank account {account_id} not found",
                code="BANK_ACCOUNT_NOT_FOUND",
                details={"provider_id": provider_id, "bank_account_id": account_id},
            )
        return account

    @BaseService.measure_operation("add_account")
    def add_account(
        self,
        provider_id: str,
        account_name: str,
        account_number: str,
        sort_code: str,
        bank_name: str,
        make_default: bool = False,
    ) -> BankAccount:
        """Add a payout account. A provider's first account becomes the default."""
        if not (account_name or "").strip() or not (bank_name or "").strip():
            raise ValidationException(
                "Account name and bank name are required", code="INVALID_BANK_ACCOUNT"
            )
        number = _normalize_account_number(account_number)
        code = _normalize_sort_code(sort_code)

        with self.locks.hold(provider_lock_key(provider_id)):
            first = not self.accounts.list_by_provider(provider_id)
            account = self.accounts.add(
                BankAccount(
                    id=generate_ulid(),
                    provider_id=provider_id,
                    account_name=account_name.strip(),
                    account_number=number,
                    sort_code=code,
                    bank_name=bank_name.strip(),
                )
            )
            if first or make_default:
                self.accounts.set_default(provider_id, account.id)
                account = replace(account, is_default=True)

        prometheus_metrics.record_ledger_operation("add_account")
        logger.info(
            "Bank account %s added for provider %s (default=%s)",
            account.masked_account_number,
            provider_id,
            account.is_default,
        )
        return account

    def set_default(self, provider_id: str, account_id: str) -> BankAccount:
        with self.locks.hold(provider_lock_key(provider_id)):
            account = self._get_account(provider_id, account_id)
            self.accounts.set_default(provider_id, account.id)
        prometheus_metrics.record_ledger_operation("set_default")
        return replace(account, is_default=True)

    @BaseService.measure_operation("remove_account")
    def remove_account(self, provider_id: str, account_id: str) -> BankAccount:
        """
        Remove a bank account.

        Refused while a pending withdrawal targets it. Removing the default
        leaves the provider with no default until one is chosen.
        """
        with self.locks.hold(provider_lock_key(provider_id)):
            account = self._get_account(provider_id, account_id)
            in_flight: Tuple[str, ...] = tuple(
                w.id
                for w in self.withdrawals.list_by_provider(provider_id)
                if w.bank_account_id == account_id and w.status is WithdrawalStatus.PENDING
            )
            if in_flight:
                raise AccountInUseError(account_id, list(in_flight))
            self.accounts.remove(account_id)

        prometheus_metrics.record_ledger_operation("remove_account")
        logger.info(
            "Bank account %s removed for provider %s (was_default=%s)",
            account.masked_account_number,
            provider_id,
            account.is_default,
        )
        return account

    def list_accounts(self, provider_id: str) -> List[BankAccount]:
        return self.accounts.list_by_provider(provider_id)

    def default_account(self, provider_id: str) -> Optional[BankAccount]:
        return next((a for a in self.accounts.list_by_provider(provider_id) if a.is_default), None)
