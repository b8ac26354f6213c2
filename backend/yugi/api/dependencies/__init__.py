# backend/yugi/api/dependencies/__init__.py
"""
Service dependencies for the HTTP routes.

The container is built once at app start and stored on ``app.state``;
routes only ever receive services through these functions, which keeps
them overridable in tests.
"""

from fastapi import Depends, Request

from ...bootstrap import ServiceContainer
from ...services.booking_service import BookingService
from ...services.settlement_service import SettlementLedger


def get_services(request: Request) -> ServiceContainer:
    services: ServiceContainer = request.app.state.services
    return services


def get_booking_service(services: ServiceContainer = Depends(get_services)) -> BookingService:
    return services.bookings


def get_settlement_ledger(services: ServiceContainer = Depends(get_services)) -> SettlementLedger:
    return services.ledger


__all__ = ["get_services", "get_booking_service", "get_settlement_ledger"]
