# backend/yugi/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for YUGI.
"""

from datetime import timedelta
from typing import Any, Dict

from yugi.core.config import settings


def get_beat_schedule(environment: str) -> Dict[str, Dict[str, Any]]:
    """Periodic tasks. The sweep interval comes from settings in every environment."""
    interval = timedelta(seconds=settings.completion_sweep_interval_seconds)
    return {
        "sweep-completed-bookings": {
            "task": "yugi.tasks.booking_tasks.sweep_completed_bookings",
            "schedule": interval,
            "options": {
                "queue": "bookings" if environment == "production" else "celery",
                # A sweep that waited a full interval is superseded by the next one.
                "expires": interval.total_seconds(),
            },
        },
    }


CELERYBEAT_SCHEDULE = get_beat_schedule(settings.environment)
