# backend/yugi/services/base.py
"""
Shared plumbing for the booking and settlement services.

Holds the injected clock, lock manager and notification sink, and times
public operations into Prometheus.
"""

from functools import wraps
import logging
import time
from typing import Any, Callable, TypeVar, cast

from ..core.clock import Clock
from ..core.locks import LockManager
from ..events.publisher import Event, NotificationSink
from ..monitoring.prometheus_metrics import prometheus_metrics

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Every dependency is passed in; services never reach for a global clock,
    store or lock registry.
    """

    def __init__(self, clock: Clock, locks: LockManager, sink: NotificationSink):
        self.clock = clock
        self.locks = locks
        self.sink = sink
        self.logger = logging.getLogger(self.__class__.__name__)

    def emit(self, event: Event) -> None:
        """Hand an event to the sink. Called only after locks are released."""
        self.sink.publish(event)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time the wrapped call and record it against this service class.

        Failures are counted by exception type and re-raised unchanged.

            @BaseService.measure_operation("cancel")
            def cancel(self, booking_id, now):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                success = False
                error_type = None
                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            "%s.%s took %.2fs", self.__class__.__name__, operation_name, elapsed
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info("Operation: %s", operation, extra={"operation": operation, **context})

