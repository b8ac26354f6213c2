"""
Tests for the cancellation refund policy.

The 24-hour boundary is measured in exact seconds and is inclusive.
"""

from datetime import datetime, timedelta, timezone

import pytest

from yugi.core.exceptions import AlreadyOccurredError, ValidationException
from yugi.core.money import Money
from yugi.models.booking import CancelledBy
from yugi.services.refund_policy_engine import RefundPolicy, compute_refund, hours_until

START = datetime(2025, 11, 1, 10, 0, 0, tzinfo=timezone.utc)
BASE = Money.of("25.00")
FEE = Money.of("1.99")


def _refund(before: timedelta, **kwargs):
    return compute_refund(START - before, START, BASE, FEE, **kwargs)


class TestUserCancellation:
    def test_exactly_24h_before_refunds_base_price(self):
        outcome = _refund(timedelta(hours=24))
        assert outcome.refund_amount == BASE
        assert outcome.policy is RefundPolicy.FULL_REFUND
        assert outcome.is_refundable

    def test_23h59m_before_refunds_nothing(self):
        outcome = _refund(timedelta(hours=23, minutes=59))
        assert outcome.refund_amount == Money.zero()
        assert outcome.policy is RefundPolicy.NO_REFUND
        assert not outcome.is_refundable

    def test_24h_and_1s_before_refunds_base_price(self):
        assert _refund(timedelta(hours=24, seconds=1)).refund_amount == BASE

    def test_one_second_inside_window_refunds_nothing(self):
        assert _refund(timedelta(hours=23, minutes=59, seconds=59)).refund_amount.is_zero()

    def test_one_second_before_start_refunds_nothing(self):
        outcome = _refund(timedelta(seconds=1))
        assert outcome.refund_amount.is_zero()
        assert outcome.hours_until_class > 0

    def test_service_fee_never_refunded(self):
        outcome = _refund(timedelta(days=10))
        assert outcome.refund_amount == BASE
        assert outcome.service_fee_withheld == FEE

    @pytest.mark.parametrize("before", [timedelta(0), timedelta(seconds=-1), timedelta(hours=-3)])
    def test_started_or_past_class_rejected(self, before):
        with pytest.raises(AlreadyOccurredError):
            _refund(before, booking_id="bk_1")

    def test_custom_cutoff(self):
        assert _refund(timedelta(hours=12), cutoff_hours=12).refund_amount == BASE
        assert _refund(timedelta(hours=11), cutoff_hours=12).refund_amount.is_zero()


class TestProviderCancellation:
    @pytest.mark.parametrize(
        "before", [timedelta(days=3), timedelta(hours=1), timedelta(0), timedelta(hours=-2)]
    )
    def test_always_refunds_base_price(self, before):
        outcome = _refund(before, initiated_by=CancelledBy.PROVIDER)
        assert outcome.refund_amount == BASE
        assert outcome.service_fee_withheld == FEE
        assert outcome.policy is RefundPolicy.PROVIDER_CANCELLED


class TestInputs:
    def test_naive_datetimes_rejected(self):
        with pytest.raises(ValidationException):
            compute_refund(datetime(2025, 11, 1, 9, 0), START, BASE, FEE)

    def test_hours_until_uses_exact_seconds(self):
        assert hours_until(START - timedelta(hours=1, minutes=30), START) == 1.5

    def test_mixed_timezones_compare_correctly(self):
        bst = timezone(timedelta(hours=1))
        now = datetime(2025, 10, 31, 11, 0, 0, tzinfo=bst)  # 10:00 UTC
        assert compute_refund(now, START, BASE, FEE).refund_amount == BASE

    def test_payload(self):
        payload = _refund(timedelta(hours=48)).to_payload()
        assert payload == {
            "refund_amount": "25.00",
            "service_fee_withheld": "1.99",
            "hours_until_class": 48.0,
            "policy": "full_refund",
            "policy_basis": ">=24 hours before class: class price refunded",
        }
