"""Tests for yugi.core.exceptions HTTP mapping."""

import pytest

from yugi.core.exceptions import (
    AccountInUseError,
    AlreadyBookedError,
    AlreadyOccurredError,
    ContentionError,
    DomainException,
    InsufficientFundsError,
    InvalidStateError,
    NoDefaultAccountError,
    NotFoundException,
    ValidationException,
)


class TestStatusCodes:
    @pytest.mark.parametrize(
        "exc, status_code, code",
        [
            (ValidationException("bad input"), 400, "ValidationException"),
            (NotFoundException("missing"), 404, "NotFoundException"),
            (AlreadyBookedError("u1", "c1"), 409, "ALREADY_BOOKED"),
            (InvalidStateError("nope", current_state="completed"), 422, "INVALID_STATE"),
            (AlreadyOccurredError("b1", -0.5), 422, "ALREADY_OCCURRED"),
            (InsufficientFundsError("30.00", "24.29"), 422, "INSUFFICIENT_FUNDS"),
            (NoDefaultAccountError("p1"), 404, "NO_DEFAULT_ACCOUNT"),
            (AccountInUseError("acc1", ["w1"]), 409, "ACCOUNT_IN_USE"),
            (ContentionError("booking:1:mutex", 2.0), 503, "CONTENTION"),
        ],
    )
    def test_to_http_exception(self, exc, status_code, code):
        http_exc = exc.to_http_exception()
        assert http_exc.status_code == status_code
        assert http_exc.detail["code"] == code
        assert http_exc.detail["message"] == exc.message

    def test_all_are_domain_exceptions(self):
        assert issubclass(ContentionError, DomainException)
        assert issubclass(NoDefaultAccountError, NotFoundException)


class TestDetails:
    def test_invalid_state_carries_current_state(self):
        exc = InvalidStateError("Booking is already cancelled", current_state="cancelled")
        assert exc.details == {"current_state": "cancelled"}

    def test_contention_sets_retry_after(self):
        http_exc = ContentionError("provider:p:ledger", 2.0).to_http_exception()
        assert http_exc.headers == {"Retry-After": "1"}

    def test_insufficient_funds_message(self):
        exc = InsufficientFundsError("30.00", "24.29")
        assert "30.00" in exc.message and "24.29" in exc.message

    def test_no_default_account_message_names_account(self):
        assert "acc_9" in NoDefaultAccountError("p1", "acc_9").message
        assert "default" in NoDefaultAccountError("p1").message
