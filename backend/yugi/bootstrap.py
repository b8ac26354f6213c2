# backend/yugi/bootstrap.py
"""
Process-start wiring.

``build_services`` constructs every service once with its store, clock,
lock manager and event sink injected. The FastAPI app and the Celery
worker each build one container; nothing else creates services.
"""

from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Optional

from .core.clock import Clock, SystemClock
from .core.config import Settings, settings as default_settings
from .core.locks import LockManager, build_lock_manager
from .events.publisher import EventPublisher, NotificationSink
from .repositories.factory import Repositories, RepositoryFactory
from .services.booking_service import BookingService
from .services.completion_scheduler import CompletionScheduler, CompletionSweeper
from .services.settlement_service import SettlementLedger

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    clock: Clock
    repositories: Repositories
    locks: LockManager
    sink: NotificationSink
    ledger: SettlementLedger
    bookings: BookingService
    sweeper: CompletionSweeper
    scheduler: CompletionScheduler


def build_services(
    app_settings: Optional[Settings] = None,
    *,
    clock: Optional[Clock] = None,
    repositories: Optional[Repositories] = None,
    lock_manager: Optional[LockManager] = None,
    publisher: Optional[NotificationSink] = None,
) -> ServiceContainer:
    app_settings = app_settings or default_settings
    clock = clock or SystemClock()
    repositories = repositories or RepositoryFactory.from_settings(app_settings)
    locks = lock_manager or build_lock_manager(app_settings)
    sink = publisher or EventPublisher()

    ledger = SettlementLedger(
        repositories.settlements,
        repositories.accounts,
        repositories.withdrawals,
        clock=clock,
        locks=locks,
        sink=sink,
        commission_rate=app_settings.commission_rate,
        holding_period=timedelta(hours=app_settings.holding_period_hours),
    )
    bookings = BookingService(
        repositories.bookings,
        ledger,
        clock=clock,
        locks=locks,
        sink=sink,
        refund_cutoff_hours=app_settings.refund_cutoff_hours,
    )
    sweeper = CompletionSweeper(bookings, clock)
    scheduler = CompletionScheduler(
        sweeper, interval_seconds=app_settings.completion_sweep_interval_seconds
    )

    logger.info(
        "Services built: lock_backend=%s store=%s commission=%s holding=%sh",
        app_settings.lock_backend,
        type(repositories.bookings).__name__,
        app_settings.commission_rate,
        app_settings.holding_period_hours,
    )
    return ServiceContainer(
        settings=app_settings,
        clock=clock,
        repositories=repositories,
        locks=locks,
        sink=sink,
        ledger=ledger,
        bookings=bookings,
        sweeper=sweeper,
        scheduler=scheduler,
    )
