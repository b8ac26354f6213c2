# backend/yugi/core/exceptions.py
"""
Domain-specific exceptions for the YUGI booking platform.

Services raise these; the routers turn them into HTTP responses through
``to_http_exception`` so every error body carries a stable ``code``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input fails business validation. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Booking, withdrawal or account id that does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Duplicate or already-settled record."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Request is well formed but the booking or ledger state forbids it."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Infrastructure failure surfaced to callers with a generic message."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details,
            },
        )


# Specific business exceptions


class AlreadyBookedError(ConflictException):
    """Raised when a user already holds an upcoming booking for the class."""

    def __init__(self, user_id: str, class_id: str):
        super().__init__(
            message="You have already booked this class",
            code="ALREADY_BOOKED",
            details={"user_id": user_id, "class_id": class_id},
        )


class InvalidStateError(BusinessRuleException):
    """Raised when an operation is not allowed in the record's current state."""

    def __init__(self, message: str, *, current_state: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="INVALID_STATE",
            details={"current_state": current_state, **(details or {})},
        )


class AlreadyOccurredError(BusinessRuleException):
    """Raised when cancelling a class that has already started."""

    def __init__(self, booking_id: Optional[str], hours_until_class: float):
        super().__init__(
            message="This class has already started and can no longer be cancelled",
            code="ALREADY_OCCURRED",
            details={"booking_id": booking_id, "hours_until_class": round(hours_until_class, 4)},
        )


class InsufficientFundsError(BusinessRuleException):
    """Raised when a withdrawal exceeds the provider's available balance."""

    def __init__(self, requested: str, available: str):
        super().__init__(
            message=f"Requested {requested} exceeds available balance of {available}",
            code="INSUFFICIENT_FUNDS",
            details={"requested": requested, "available": available},
        )


class NoDefaultAccountError(NotFoundException):
    """Raised when a withdrawal has no usable bank account."""

    def __init__(self, provider_id: str, bank_account_id: Optional[str] = None):
        message = (
            f"Bank account {bank_account_id} not found"
            if bank_account_id
            else "No default bank account configured"
        )
        super().__init__(
            message=message,
            code="NO_DEFAULT_ACCOUNT",
            details={"provider_id": provider_id, "bank_account_id": bank_account_id},
        )


class AccountInUseError(ConflictException):
    """Raised when removing a bank account that a pending withdrawal targets."""

    def __init__(self, account_id: str, withdrawal_ids: list[str]):
        super().__init__(
            message="This bank account has withdrawals in progress",
            code="ACCOUNT_IN_USE",
            details={"bank_account_id": account_id, "pending_withdrawals": withdrawal_ids},
        )


class ContentionError(ServiceException):
    """Raised when a keyed lock cannot be acquired in time. Safe to retry with backoff."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, key: str, timeout_s: float):
        super().__init__(
            message="Resource is busy. Please retry.",
            code="CONTENTION",
            details={"key": key, "timeout_s": timeout_s},
        )

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "1"}
        return exc


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as database connection
    issues, query failures, or constraint violations.
    """
