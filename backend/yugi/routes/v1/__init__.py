# backend/yugi/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, disputes, providers

__all__ = [
    "bookings",
    "disputes",
    "providers",
]
