# backend/yugi/tasks/celery_app.py
"""
Celery application configuration for YUGI.

Redis is the broker. The completion sweep is the only periodic task; beat
drives it for deployments that do not run the in-process scheduler.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from yugi.core.config import settings

logger = logging.getLogger(__name__)

TASK_MODULES = ("yugi.tasks.booking_tasks",)

# A sweep holds booking locks one at a time, so the hard limit only has to
# cover a full pass over the due bookings.
SWEEP_SOFT_LIMIT_SECONDS = 120
SWEEP_HARD_LIMIT_SECONDS = 300


def _worker_config() -> Dict[str, Any]:
    return {
        "task_serializer": "json",
        "result_serializer": "json",
        "accept_content": ["json"],
        "timezone": "UTC",
        "enable_utc": True,
        # Sweep results are only read by operators; keep them an hour.
        "result_expires": 3600,
        "task_soft_time_limit": SWEEP_SOFT_LIMIT_SECONDS,
        "task_time_limit": SWEEP_HARD_LIMIT_SECONDS,
        # Completion is idempotent, so redelivery after a crash is safe.
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "task_default_retry_delay": 60,
        "worker_prefetch_multiplier": 1,
        "worker_max_tasks_per_child": 1000,
        "worker_hijack_root_logger": False,
        "worker_redirect_stdouts_level": "INFO",
    }


def create_celery_app() -> Celery:
    """Build the worker app from settings. Beat and routing are attached here."""
    from yugi.tasks.beat_schedule import get_beat_schedule

    app = Celery("yugi", broker=settings.broker_url, backend=settings.broker_url)
    app.conf.update(_worker_config())
    app.conf.imports = tuple(set(app.conf.imports or ()) | set(TASK_MODULES))
    app.conf.task_routes = {f"{module}.*": {"queue": "bookings"} for module in TASK_MODULES}
    app.conf.beat_schedule = get_beat_schedule(settings.environment)
    return app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Workers log through the same root handler as the API process."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Attaches task id and name to every lifecycle log line."""

    def _context(self, task_id: str) -> Dict[str, Any]:
        return {"task_id": task_id, "task_name": self.name}

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            "Task %s[%s] failed: %s", self.name, task_id, exc,
            exc_info=True, extra=self._context(task_id),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        attempt = self.request.retries
        logger.warning(
            "Task %s[%s] retrying (attempt %s): %s", self.name, task_id, attempt, exc,
            extra={**self._context(task_id), "retry_count": attempt},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger.info("Task %s[%s] done", self.name, task_id, extra=self._context(task_id))
        super().on_success(retval, task_id, args, kwargs)


celery_app.Task = cast(Type[Task], BaseTask)


@celery_app.task(name="yugi.tasks.ping")  # type: ignore[misc]
def ping() -> Dict[str, str]:
    """Round-trip check that a worker is consuming."""
    request = celery_app.current_task.request if celery_app.current_task else None
    return {
        "status": "ok",
        "worker": (request.hostname if request else None) or "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
