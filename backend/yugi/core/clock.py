"""Injectable time source."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Protocol

from .exceptions import ValidationException


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def require_aware(value: datetime, field: str) -> datetime:
    """Reject naive datetimes; both sides of every time comparison share a reference frame."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValidationException(
            f"{field} must be timezone-aware",
            code="NAIVE_DATETIME",
            details={"field": field},
        )
    return value


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize stored datetimes; SQLite hands back naive values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
