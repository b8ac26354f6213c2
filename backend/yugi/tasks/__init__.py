# backend/yugi/tasks/__init__.py
"""
Celery tasks package for YUGI.

- Completion sweep for bookings whose class has ended
"""

from yugi.tasks.booking_tasks import sweep_completed_bookings
from yugi.tasks.celery_app import BaseTask, celery_app, ping

__all__ = [
    "celery_app",
    "BaseTask",
    "ping",
    "sweep_completed_bookings",
]
