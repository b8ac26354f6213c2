# backend/yugi/tasks/booking_tasks.py
"""
Celery tasks for the booking lifecycle.

Runs the completion sweep on the worker. Per-booking failures are counted
in the result and never fail the task; only a sweep that cannot run at all
(for example the store is unreachable) is retried.
"""

from functools import lru_cache
import logging
from typing import Any, Callable, Dict, ParamSpec, Protocol, TypeVar, cast

from celery.result import AsyncResult

from yugi.bootstrap import ServiceContainer, build_services
from yugi.core.config import settings
from yugi.tasks.celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


@lru_cache(maxsize=1)
def get_worker_services() -> ServiceContainer:
    """
    One service container per worker process.

    Without ``database_url`` the worker gets a private in-memory store that the
    API never writes to, so its sweeps find nothing.
    """
    if not settings.database_url:
        logger.warning(
            "Worker has no database_url; completion sweeps will run over an empty "
            "in-memory store. Set YUGI_DATABASE_URL to share the API's store."
        )
    return build_services(settings)


@typed_task(bind=True, max_retries=3, name="yugi.tasks.booking_tasks.sweep_completed_bookings")
def sweep_completed_bookings(self: Any) -> Dict[str, Any]:
    """
    Complete every upcoming booking whose class has ended.

    Returns:
        Dict with sweep counts
    """
    try:
        result = get_worker_services().sweeper.run_once()
    except Exception as exc:
        logger.error("Completion sweep task failed: %s", exc)
        raise self.retry(exc=exc, countdown=60)

    return result.to_dict()
