# backend/yugi/repositories/factory.py
"""
Repository Factory for the YUGI booking platform

Builds a matching set of stores, either all in-memory or all backed by one
SQLAlchemy session factory.
"""

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session, sessionmaker

from .base_repository import (
    BankAccountRepository,
    BookingRepository,
    SettlementRepository,
    WithdrawalRepository,
)

if TYPE_CHECKING:
    from ..core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repositories:
    bookings: BookingRepository
    settlements: SettlementRepository
    accounts: BankAccountRepository
    withdrawals: WithdrawalRepository


class RepositoryFactory:
    """
    Factory class for creating repository sets.

    Services only see the protocols, so swapping the backend is a matter of
    calling a different factory method.
    """

    @staticmethod
    def create_in_memory() -> Repositories:
        from .memory import (
            InMemoryBankAccountRepository,
            InMemoryBookingRepository,
            InMemorySettlementRepository,
            InMemoryWithdrawalRepository,
        )

        return Repositories(
            bookings=InMemoryBookingRepository(),
            settlements=InMemorySettlementRepository(),
            accounts=InMemoryBankAccountRepository(),
            withdrawals=InMemoryWithdrawalRepository(),
        )

    @staticmethod
    def create_sql(session_factory: "sessionmaker[Session]") -> Repositories:
        from .sql import (
            SqlBankAccountRepository,
            SqlBookingRepository,
            SqlSettlementRepository,
            SqlWithdrawalRepository,
        )

        return Repositories(
            bookings=SqlBookingRepository(session_factory),
            settlements=SqlSettlementRepository(session_factory),
            accounts=SqlBankAccountRepository(session_factory),
            withdrawals=SqlWithdrawalRepository(session_factory),
        )

    @staticmethod
    def from_settings(app_settings: "Settings") -> Repositories:
        """SQL stores when ``database_url`` is set, in-memory otherwise."""
        if not app_settings.database_url:
            logger.info("No database_url configured; using in-memory stores")
            return RepositoryFactory.create_in_memory()

        from ..database import build_engine, build_session_factory, init_db

        engine = build_engine(app_settings.database_url)
        init_db(engine)
        return RepositoryFactory.create_sql(build_session_factory(engine))
