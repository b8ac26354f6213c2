# backend/tests/conftest.py
"""
Pytest configuration for the YUGI booking core.

Every service is built with a ManualClock, in-process locks and in-memory
stores, so tests control time explicitly and never touch Redis or a real
database.
"""

import itertools
import os
import sys

# Set test configuration BEFORE any yugi imports
os.environ["CI"] = "true"  # skip .env loading
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOCK_BACKEND"] = "local"
os.environ.pop("YUGI_DATABASE_URL", None)
os.environ.pop("DATABASE_URL", None)

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from datetime import timedelta
from typing import Callable, List

from fastapi.testclient import TestClient
import pytest

from tests.helpers.clock import ManualClock
from tests.helpers.constants import PROVIDER_ID, T0, USER_ID
from yugi.bootstrap import ServiceContainer, build_services
from yugi.core.config import Settings
from yugi.core.locks import LocalLockManager
from yugi.core.money import Money
from yugi.events.publisher import Event, EventPublisher
from yugi.main import create_app
from yugi.models.booking import BookingRequest, ClassSnapshot, EnhancedBooking
from yugi.repositories.factory import RepositoryFactory


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        database_url="",
        lock_backend="local",
        lock_timeout_seconds=0.5,
        scheduler_enabled=False,
        completion_sweep_interval_seconds=60,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def events() -> List[Event]:
    return []


@pytest.fixture
def publisher(events: List[Event]) -> EventPublisher:
    return EventPublisher([events.append])


@pytest.fixture
def container(
    test_settings: Settings, clock: ManualClock, publisher: EventPublisher
) -> ServiceContainer:
    return build_services(
        test_settings,
        clock=clock,
        repositories=RepositoryFactory.create_in_memory(),
        lock_manager=LocalLockManager(timeout_s=test_settings.lock_timeout_seconds),
        publisher=publisher,
    )


@pytest.fixture
def client(container: ServiceContainer):
    """Test client around the fixture container."""
    # Don't use context manager - services are already built
    test_client = TestClient(create_app(container))

    yield test_client


@pytest.fixture
def booking_service(container: ServiceContainer):
    return container.bookings


@pytest.fixture
def ledger(container: ServiceContainer):
    return container.ledger


@pytest.fixture
def snapshot() -> ClassSnapshot:
    """£25.00 class plus the £1.99 service fee: £26.99 gross."""
    return ClassSnapshot(
        provider_id=PROVIDER_ID,
        class_name="Baby Sensory",
        base_price=Money.of("25.00"),
        location="Community Hall, Leeds",
    )


@pytest.fixture
def make_booking(
    booking_service, clock: ManualClock, snapshot: ClassSnapshot
) -> Callable[..., EnhancedBooking]:
    """Create an upcoming booking starting ``starts_in`` from the clock's now."""
    sequence = itertools.count(1)

    def _make(
        starts_in: timedelta = timedelta(hours=2),
        duration: timedelta = timedelta(hours=1),
        user_id: str = USER_ID,
        class_id: str = "",
        class_snapshot: ClassSnapshot = snapshot,
        **overrides,
    ) -> EnhancedBooking:
        request = BookingRequest(
            class_id=class_id or f"class_{next(sequence):03d}",
            user_id=user_id,
            start_time=clock.now() + starts_in,
            duration_seconds=int(duration.total_seconds()),
            **overrides,
        )
        return booking_service.create(request, class_snapshot)

    return _make
