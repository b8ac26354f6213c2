"""
Settlement ledger tests.

Reference scenario: a £25.00 class plus the £1.99 service fee (£26.99 gross)
completes at T0+3h1s. 10% commission is £2.70, so £24.29 net is held for 72
hours and then becomes withdrawable.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from tests.helpers.constants import PROVIDER_ID, T0
from yugi.core.exceptions import (
    AccountInUseError,
    InsufficientFundsError,
    InvalidStateError,
    NoDefaultAccountError,
    NotFoundException,
    ValidationException,
)
from yugi.core.money import Money
from yugi.events.booking_events import DisputeOpened, DisputeResolved, WithdrawalRequested
from yugi.models.booking import ClassSnapshot
from yugi.models.settlement import DisputeOutcome, SettlementEntry, WithdrawalStatus

NET = Money.of("24.29")


@pytest.fixture
def completed(make_booking, booking_service, clock):
    """Complete a booking at T0+3h1s and return it."""

    def _complete():
        enhanced = make_booking(starts_in=timedelta(hours=2), duration=timedelta(hours=1))
        assert booking_service.attempt_complete(
            enhanced.id, now=enhanced.booking.end_time + timedelta(seconds=1)
        )
        return enhanced

    return _complete


@pytest.fixture
def account(ledger):
    return ledger.add_account(PROVIDER_ID, "Jo's Classes Ltd", "12345678", "12-34-56", "Monzo")


class TestEntries:
    def test_build_entry_reconciles(self, make_booking, ledger, clock):
        enhanced = make_booking()
        entry = ledger.build_entry(enhanced, clock.now())
        assert entry.gross_amount == Money.of("26.99")
        assert entry.commission_amount == Money.of("2.70")
        assert entry.net_amount == NET
        assert entry.gross_amount == entry.commission_amount + entry.net_amount

    def test_commission_rounds_half_up(self, make_booking, ledger, clock):
        # 10% of £10.05 gross is 1.005, which rounds up to 1.01.
        odd = ClassSnapshot(
            provider_id=PROVIDER_ID,
            class_name="Odd",
            base_price=Money.of("8.06"),
            service_fee=Money.of("1.99"),
        )
        entry = ledger.build_entry(make_booking(class_snapshot=odd), clock.now())
        assert entry.commission_amount == Money.of("1.01")
        assert entry.net_amount == Money.of("9.04")

    def test_unreconciled_entry_rejected(self, make_booking, ledger, clock):
        entry = ledger.build_entry(make_booking(), clock.now())
        bad = SettlementEntry(
            booking_id=entry.booking_id,
            provider_id=entry.provider_id,
            gross_amount=entry.gross_amount,
            commission_amount=entry.commission_amount,
            net_amount=Money.of("1.00"),
            completed_at=entry.completed_at,
            held_until=entry.held_until,
        )
        with pytest.raises(ValidationException) as exc_info:
            ledger.record_completion(bad)
        assert exc_info.value.code == "UNRECONCILED_ENTRY"

    def test_record_completion_returns_existing(self, make_booking, ledger, clock):
        entry = ledger.build_entry(make_booking(), clock.now())
        assert ledger.record_completion(entry) == entry

        second = ledger.build_entry(make_booking(), clock.now())
        assert ledger.record_completion(second) == second
        assert ledger.record_completion(entry) == entry
        assert len(ledger.list_entries(PROVIDER_ID)) == 2

    def test_failed_transition_appends_nothing(self, make_booking, ledger, clock):
        entry = ledger.build_entry(make_booking(), clock.now())
        assert ledger.record_completion(entry, transition=lambda: False) is None
        assert ledger.list_entries(PROVIDER_ID) == []

    def test_get_entry_missing(self, ledger):
        with pytest.raises(NotFoundException) as exc_info:
            ledger.get_entry("missing")
        assert exc_info.value.code == "SETTLEMENT_NOT_FOUND"


class TestHoldingPeriod:
    def test_balance_released_after_72_hours(self, completed, ledger, clock):
        enhanced = completed()
        completed_at = ledger.get_entry(enhanced.id).completed_at

        assert ledger.available_balance(PROVIDER_ID, completed_at) == Money.zero()
        assert ledger.available_balance(
            PROVIDER_ID, completed_at + timedelta(hours=71, minutes=59)
        ) == Money.zero()
        assert (
            ledger.available_balance(PROVIDER_ID, completed_at + timedelta(hours=72, seconds=1))
            == NET
        )

    def test_released_exactly_at_held_until(self, completed, ledger):
        entry = ledger.get_entry(completed().id)
        assert entry.held_until == entry.completed_at + timedelta(hours=72)

        just_before = entry.held_until - timedelta(microseconds=1)
        assert ledger.available_balance(PROVIDER_ID, just_before) == Money.zero()
        assert ledger.available_balance(PROVIDER_ID, entry.held_until) == NET
        assert entry.is_released(entry.held_until)
        assert not entry.is_held(entry.held_until)

    def test_swept_booking_follows_holding_period(self, make_booking, container, ledger):
        enhanced = make_booking(starts_in=timedelta(hours=2), duration=timedelta(hours=1))
        swept_at = T0 + timedelta(hours=3, seconds=1)

        result = container.sweeper.run_once(now=swept_at)

        assert result.completed == 1
        entry = ledger.get_entry(enhanced.id)
        assert entry.completed_at == swept_at
        assert entry.gross_amount == Money.of("26.99")
        assert entry.commission_amount == Money.of("2.70")
        assert entry.net_amount == NET
        assert ledger.available_balance(
            PROVIDER_ID, swept_at + timedelta(hours=71, minutes=59)
        ) == Money.zero()
        assert ledger.available_balance(PROVIDER_ID, swept_at + timedelta(hours=72)) == NET

    def test_summary(self, completed, ledger):
        enhanced = completed()
        completed_at = ledger.get_entry(enhanced.id).completed_at

        held = ledger.ledger_summary(PROVIDER_ID, completed_at + timedelta(hours=1))
        assert held.total_earnings == Money.of("26.99")
        assert held.commission_paid == Money.of("2.70")
        assert held.held_funds == NET
        assert held.available_balance == Money.zero()

        released = ledger.ledger_summary(PROVIDER_ID, completed_at + timedelta(hours=73))
        assert released.held_funds == Money.zero()
        assert released.available_balance == NET
        assert released.total_withdrawn == Money.zero()

    def test_pending_releases_soonest_first(self, completed, ledger, clock):
        first = completed()
        clock.advance(hours=10)
        second = completed()
        first_done = ledger.get_entry(first.id).completed_at

        releases = ledger.pending_releases(PROVIDER_ID, first_done + timedelta(hours=1))
        assert [r.booking_id for r in releases] == [first.id, second.id]
        assert releases[0].remaining == timedelta(hours=71)

        later = ledger.pending_releases(PROVIDER_ID, first_done + timedelta(hours=72))
        assert [r.booking_id for r in later] == [second.id]

    def test_other_providers_unaffected(self, completed, ledger):
        completed()
        assert ledger.ledger_summary("prov_other").total_earnings == Money.zero()


class TestDisputes:
    def test_open_dispute_holds_funds(self, completed, ledger, events):
        enhanced = completed()
        after_hold = ledger.get_entry(enhanced.id).held_until + timedelta(hours=1)

        entry = ledger.open_dispute(enhanced.id)
        assert entry.dispute_open is True
        assert ledger.available_balance(PROVIDER_ID, after_hold) == Money.zero()
        assert ledger.ledger_summary(PROVIDER_ID, after_hold).held_funds == NET
        assert ledger.pending_releases(PROVIDER_ID, after_hold)[0].remaining == timedelta(0)
        assert isinstance(events[-1], DisputeOpened)

    def test_rejected_dispute_releases_funds(self, completed, ledger):
        enhanced = completed()
        after_hold = ledger.get_entry(enhanced.id).held_until + timedelta(hours=1)
        ledger.open_dispute(enhanced.id)

        entry = ledger.resolve_dispute(enhanced.id, "rejected")
        assert entry.dispute_open is False
        assert entry.forfeited is False
        assert ledger.available_balance(PROVIDER_ID, after_hold) == NET

    def test_upheld_dispute_forfeits_entry(self, completed, ledger, events):
        enhanced = completed()
        after_hold = ledger.get_entry(enhanced.id).held_until + timedelta(hours=1)
        ledger.open_dispute(enhanced.id)

        entry = ledger.resolve_dispute(enhanced.id, DisputeOutcome.UPHELD)
        assert entry.forfeited is True

        summary = ledger.ledger_summary(PROVIDER_ID, after_hold)
        assert summary.available_balance == Money.zero()
        assert summary.held_funds == Money.zero()
        assert summary.forfeited_funds == NET
        resolved = events[-1]
        assert isinstance(resolved, DisputeResolved)
        assert resolved.outcome == "upheld"

    def test_forfeited_entry_cannot_be_disputed_again(self, completed, ledger):
        enhanced = completed()
        ledger.open_dispute(enhanced.id)
        ledger.resolve_dispute(enhanced.id, "upheld")
        with pytest.raises(InvalidStateError):
            ledger.open_dispute(enhanced.id)

    def test_double_open_rejected(self, completed, ledger):
        enhanced = completed()
        ledger.open_dispute(enhanced.id)
        with pytest.raises(InvalidStateError):
            ledger.open_dispute(enhanced.id)

    def test_resolve_without_open_dispute(self, completed, ledger):
        enhanced = completed()
        with pytest.raises(InvalidStateError):
            ledger.resolve_dispute(enhanced.id, "rejected")

    def test_unknown_outcome(self, completed, ledger):
        enhanced = completed()
        ledger.open_dispute(enhanced.id)
        with pytest.raises(ValidationException) as exc_info:
            ledger.resolve_dispute(enhanced.id, "maybe")
        assert exc_info.value.code == "INVALID_OUTCOME"

    def test_dispute_on_unknown_booking(self, ledger):
        with pytest.raises(NotFoundException):
            ledger.open_dispute("missing")


class TestWithdrawals:
    @pytest.fixture
    def released(self, completed, ledger, clock):
        """One released £24.29 entry; the clock sits after the holding period."""
        enhanced = completed()
        clock.set(ledger.get_entry(enhanced.id).held_until + timedelta(seconds=1))
        return enhanced

    def test_withdraw_to_default_account(self, released, account, ledger, events):
        record = ledger.request_withdrawal(PROVIDER_ID, None, "20.00")

        assert record.status is WithdrawalStatus.PENDING
        assert record.bank_account_id == account.id
        assert record.amount == Money.of("20.00")
        assert ledger.available_balance(PROVIDER_ID) == Money.of("4.29")
        assert isinstance(events[-1], WithdrawalRequested)

    def test_exact_balance_can_be_withdrawn(self, released, account, ledger):
        ledger.request_withdrawal(PROVIDER_ID, account.id, Decimal("24.29"))
        assert ledger.available_balance(PROVIDER_ID) == Money.zero()

    def test_more_than_balance_rejected(self, released, account, ledger):
        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger.request_withdrawal(PROVIDER_ID, account.id, "24.30")
        assert exc_info.value.code == "INSUFFICIENT_FUNDS"
        assert ledger.list_withdrawals(PROVIDER_ID) == []

    def test_held_funds_not_withdrawable(self, completed, account, ledger):
        completed()
        with pytest.raises(InsufficientFundsError):
            ledger.request_withdrawal(PROVIDER_ID, account.id, "1.00")

    @pytest.mark.parametrize("amount", ["0", "-5.00", "abc"])
    def test_invalid_amount(self, released, account, ledger, amount):
        with pytest.raises(ValidationException) as exc_info:
            ledger.request_withdrawal(PROVIDER_ID, account.id, amount)
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_no_default_account(self, released, ledger):
        with pytest.raises(NoDefaultAccountError):
            ledger.request_withdrawal(PROVIDER_ID, None, "5.00")

    def test_foreign_account_rejected(self, released, ledger):
        other = ledger.add_account("prov_other", "Other", "87654321", "654321", "Barclays")
        with pytest.raises(NoDefaultAccountError):
            ledger.request_withdrawal(PROVIDER_ID, other.id, "5.00")

    def test_failed_withdrawal_restores_balance(self, released, account, ledger):
        record = ledger.request_withdrawal(PROVIDER_ID, None, "24.29")
        failed = ledger.fail_withdrawal(record.id)

        assert failed.status is WithdrawalStatus.FAILED
        assert ledger.available_balance(PROVIDER_ID) == NET

    def test_completed_withdrawal_stays_deducted(self, released, account, ledger):
        record = ledger.request_withdrawal(PROVIDER_ID, None, "10.00")
        done = ledger.complete_withdrawal(record.id)

        assert done.status is WithdrawalStatus.COMPLETED
        assert done.settled_at is not None
        summary = ledger.ledger_summary(PROVIDER_ID)
        assert summary.total_withdrawn == Money.of("10.00")
        assert summary.available_balance == Money.of("14.29")

    def test_settled_withdrawal_is_final(self, released, account, ledger):
        record = ledger.request_withdrawal(PROVIDER_ID, None, "10.00")
        ledger.complete_withdrawal(record.id)
        with pytest.raises(InvalidStateError):
            ledger.fail_withdrawal(record.id)

    def test_unknown_withdrawal(self, ledger):
        with pytest.raises(NotFoundException) as exc_info:
            ledger.complete_withdrawal("missing")
        assert exc_info.value.code == "WITHDRAWAL_NOT_FOUND"


class TestBankAccounts:
    def test_first_account_becomes_default(self, account, ledger):
        assert account.is_default is True
        assert account.sort_code == "12-34-56"
        assert account.masked_account_number == "****5678"
        assert ledger.default_account(PROVIDER_ID).id == account.id

    def test_second_account_not_default_unless_asked(self, account, ledger):
        second = ledger.add_account(PROVIDER_ID, "Savings", "11112222", "112233", "HSBC")
        assert second.is_default is False

        third = ledger.add_account(
            PROVIDER_ID, "New", "33334444", "11 22 33", "Starling", make_default=True
        )
        defaults = [a.id for a in ledger.list_accounts(PROVIDER_ID) if a.is_default]
        assert defaults == [third.id]

    def test_set_default_is_exclusive(self, account, ledger):
        second = ledger.add_account(PROVIDER_ID, "Savings", "11112222", "112233", "HSBC")
        ledger.set_default(PROVIDER_ID, second.id)

        defaults = [a.id for a in ledger.list_accounts(PROVIDER_ID) if a.is_default]
        assert defaults == [second.id]

    def test_set_default_unknown_account(self, account, ledger):
        with pytest.raises(NotFoundException) as exc_info:
            ledger.set_default(PROVIDER_ID, "missing")
        assert exc_info.value.code == "BANK_ACCOUNT_NOT_FOUND"

    def test_set_default_foreign_account(self, account, ledger):
        with pytest.raises(NotFoundException):
            ledger.set_default("prov_other", account.id)

    def test_remove_default_leaves_no_default(self, account, ledger):
        ledger.add_account(PROVIDER_ID, "Savings", "11112222", "112233", "HSBC")
        ledger.remove_account(PROVIDER_ID, account.id)

        assert ledger.default_account(PROVIDER_ID) is None
        assert len(ledger.list_accounts(PROVIDER_ID)) == 1

    def test_remove_refused_while_withdrawal_pending(self, completed, account, ledger, clock):
        enhanced = completed()
        clock.set(ledger.get_entry(enhanced.id).held_until + timedelta(seconds=1))
        record = ledger.request_withdrawal(PROVIDER_ID, None, "5.00")

        with pytest.raises(AccountInUseError) as exc_info:
            ledger.remove_account(PROVIDER_ID, account.id)
        assert exc_info.value.code == "ACCOUNT_IN_USE"

        ledger.complete_withdrawal(record.id)
        ledger.remove_account(PROVIDER_ID, account.id)
        assert ledger.list_accounts(PROVIDER_ID) == []

    @pytest.mark.parametrize(
        "number, sort_code, code",
        [
            ("1234567", "123456", "INVALID_ACCOUNT_NUMBER"),
            ("1234567X", "123456", "INVALID_ACCOUNT_NUMBER"),
            ("12345678", "12345", "INVALID_SORT_CODE"),
            ("12345678", "12-34-5a", "INVALID_SORT_CODE"),
        ],
    )
    def test_validation(self, ledger, number, sort_code, code):
        with pytest.raises(ValidationException) as exc_info:
            ledger.add_account(PROVIDER_ID, "Name", number, sort_code, "Bank")
        assert exc_info.value.code == code

    def test_names_required(self, ledger):
        with pytest.raises(ValidationException) as exc_info:
            ledger.add_account(PROVIDER_ID, "  ", "12345678", "123456", "Bank")
        assert exc_info.value.code == "INVALID_BANK_ACCOUNT"
