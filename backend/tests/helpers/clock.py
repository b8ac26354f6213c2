"""Controllable clock for driving time-based behaviour in tests."""

from datetime import datetime, timedelta
import threading


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            raise ValueError("ManualClock needs a timezone-aware start")
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, delta: timedelta = timedelta(0), **kwargs: float) -> datetime:
        """``clock.advance(hours=3, seconds=1)`` or ``clock.advance(timedelta(...))``."""
        with self._lock:
            self._now = self._now + delta + timedelta(**kwargs)
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value
