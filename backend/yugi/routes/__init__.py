# backend/yugi/routes/__init__.py
"""
HTTP routes.

Unversioned infrastructure endpoints live here; domain endpoints are under
``routes.v1`` and mounted at /api/v1.
"""

from . import prometheus as prometheus

__all__ = ["prometheus"]
