"""
Prometheus metrics module for the YUGI booking platform.

Counters and histograms for booking transitions, keyed locks, the completion
sweep and ledger operations. Everything registers on a private registry so
importing this module never collides with the default process collectors.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Private registry: the default one carries process collectors we do not export.
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "yugi_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "yugi_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "yugi_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "yugi_booking_transitions_total",
    "Booking status transitions by target status and outcome",
    ["transition", "outcome"],  # completed|cancelled, applied|noop|rejected
    registry=REGISTRY,
)

keyed_lock_total = Counter(
    "yugi_keyed_lock_total",
    "Keyed lock operations",
    ["scope", "action", "outcome"],  # booking|provider|other, acquire|release
    registry=REGISTRY,
)

completion_sweep_duration_seconds = Histogram(
    "yugi_completion_sweep_duration_seconds",
    "Duration of one completion sweep",
    registry=REGISTRY,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

completion_sweep_bookings_total = Counter(
    "yugi_completion_sweep_bookings_total",
    "Bookings examined by the completion sweep, by outcome",
    ["outcome"],  # completed|not_due|skipped|failed
    registry=REGISTRY,
)

ledger_operations_total = Counter(
    "yugi_ledger_operations_total",
    "Settlement ledger mutations by operation and outcome",
    ["operation", "outcome"],
    registry=REGISTRY,
)

money_rounding_total = Counter(
    "yugi_money_rounding_total",
    "Money values rounded to the minor unit",
    ["context"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Recording helpers for the metrics above, plus exposition for the scrape route."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """Called by ``BaseService.measure_operation`` after every wrapped call."""
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_transition(transition: str, outcome: str) -> None:
        booking_transitions_total.labels(transition=transition, outcome=outcome).inc()

    @staticmethod
    def record_lock(scope: str, action: str, outcome: str) -> None:
        keyed_lock_total.labels(scope=scope, action=action, outcome=outcome).inc()

    @staticmethod
    def record_sweep(
        duration: float, *, completed: int, not_due: int, skipped: int, failed: int
    ) -> None:
        completion_sweep_duration_seconds.observe(max(duration, 0.0))
        counts = {"completed": completed, "not_due": not_due, "skipped": skipped, "failed": failed}
        for outcome, count in counts.items():
            if count:
                completion_sweep_bookings_total.labels(outcome=outcome).inc(count)

    @staticmethod
    def record_ledger_operation(operation: str, outcome: str = "success") -> None:
        ledger_operations_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_money_rounding(context: str) -> None:
        money_rounding_total.labels(context=context or "unspecified").inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Text exposition of the private registry."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
