# backend/yugi/services/completion_scheduler.py
"""
Automatic completion of bookings whose class has ended.

``CompletionSweeper`` runs one pass over every upcoming booking.
``CompletionScheduler`` runs that pass on a background thread: once as soon
as it starts, so bookings that fell due while the process was down are not
left waiting a full interval, and then on a fixed interval until stopped.
The same pass is also exposed as a Celery task for deployments that run
beat instead of the in-process thread.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
import logging
import threading
import time
from typing import Dict, List, Optional, Union

from ..core.clock import Clock
from ..core.exceptions import ContentionError
from ..monitoring.prometheus_metrics import prometheus_metrics
from .booking_service import BookingService

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


@dataclass
class SweepResult:
    examined: int = 0
    completed: int = 0
    not_due: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    processed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Union[int, str, None, List[Dict[str, str]]]]:
        return asdict(self)


class CompletionSweeper:
    """One pass over all upcoming bookings.

    Holds no lock of its own; each booking is handled under its own lock
    inside ``BookingService.attempt_complete``. A failure on one booking is
    logged and counted and the pass moves on.
    """

    def __init__(self, booking_service: BookingService, clock: Clock):
        self.booking_service = booking_service
        self.clock = clock

    def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        now = self.clock.now() if now is None else now
        started = time.perf_counter()
        result = SweepResult(processed_at=now.isoformat())

        for enhanced in self.booking_service.list_upcoming():
            result.examined += 1
            if not enhanced.booking.is_due(now):
                result.not_due += 1
                continue
            try:
                if self.booking_service.attempt_complete(enhanced.id, now):
                    result.completed += 1
                else:
                    # Cancelled or completed by someone else since the listing.
                    result.skipped += 1
            except ContentionError:
                result.skipped += 1
                logger.warning(
                    "completion_sweep_contention", extra={"booking_id": enhanced.id}
                )
            except Exception as exc:
                result.failed += 1
                result.failures.append({"booking_id": enhanced.id, "error": str(exc)})
                logger.exception("Failed to auto-complete booking %s", enhanced.id)

        duration = time.perf_counter() - started
        prometheus_metrics.record_sweep(
            duration,
            completed=result.completed,
            not_due=result.not_due,
            skipped=result.skipped,
            failed=result.failed,
        )
        if result.completed or result.failed:
            logger.info(
                "Completion sweep: examined=%d completed=%d not_due=%d skipped=%d failed=%d (%.3fs)",
                result.examined,
                result.completed,
                result.not_due,
                result.skipped,
                result.failed,
                duration,
            )
        return result


class CompletionScheduler:
    """Runs the sweep on a daemon thread. ``start`` after ``stop`` starts a fresh thread."""

    def __init__(
        self,
        sweeper: CompletionSweeper,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.sweeps_run = 0

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="yugi-completion-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info("Completion scheduler started (interval=%.1fs)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Completion scheduler thread did not stop within %ss", timeout)
            else:
                logger.info("Completion scheduler stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.sweeper.run_once()
            except Exception:
                logger.exception("Completion sweep failed")
            self.sweeps_run += 1
            stop_event.wait(self.interval_seconds)
