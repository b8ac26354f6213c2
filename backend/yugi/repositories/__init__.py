# backend/yugi/repositories/__init__.py
"""
Repository layer for the YUGI booking platform.

Key Components:
- Store protocols: BookingRepository, SettlementRepository,
  BankAccountRepository, WithdrawalRepository
- In-memory and SQLAlchemy implementations of each
- RepositoryFactory: builds a matching set of stores

Usage:
    from yugi.repositories import RepositoryFactory

    repos = RepositoryFactory.create_in_memory()
    upcoming = repos.bookings.list_by_status(BookingStatus.UPCOMING)
"""

from .base_repository import (
    BankAccountRepository,
    BookingRepository,
    SettlementRepository,
    WithdrawalRepository,
)
from .factory import Repositories, RepositoryFactory
from .memory import (
    InMemoryBankAccountRepository,
    InMemoryBookingRepository,
    InMemorySettlementRepository,
    InMemoryWithdrawalRepository,
)

__all__ = [
    "BankAccountRepository",
    "BookingRepository",
    "SettlementRepository",
    "WithdrawalRepository",
    "Repositories",
    "RepositoryFactory",
    "InMemoryBankAccountRepository",
    "InMemoryBookingRepository",
    "InMemorySettlementRepository",
    "InMemoryWithdrawalRepository",
]
