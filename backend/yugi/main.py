# backend/yugi/main.py
"""
FastAPI application for the YUGI booking lifecycle and settlement ledger.

Run with ``uvicorn yugi.main:app``.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator, Dict, Optional

from fastapi import APIRouter, FastAPI

from .bootstrap import ServiceContainer, build_services
from .core.config import is_running_tests, settings
from .core.constants import BRAND_NAME
from .routes import prometheus
from .routes.v1 import bookings as bookings_v1, disputes as disputes_v1, providers as providers_v1

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the app around ``container``, or around a container built from
    settings at startup when none is given.
    """

    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("%s API starting up...", BRAND_NAME)
        logger.info("Environment: %s", settings.environment)
        services = container or build_services(settings)
        app.state.services = services

        run_scheduler = services.settings.scheduler_enabled
        if run_scheduler and is_running_tests():
            logger.info("Running under pytest; completion scheduler not started")
            run_scheduler = False
        if run_scheduler:
            services.scheduler.start()
        try:
            yield
        finally:
            if run_scheduler:
                services.scheduler.stop()
            logger.info("%s API shut down", BRAND_NAME)

    app = FastAPI(
        title=f"{BRAND_NAME} Bookings API",
        description="Booking lifecycle, refunds and provider settlement",
        version="1.0.0",
        lifespan=app_lifespan,
    )
    if container is not None:
        # Available before startup so tests can reach services without a lifespan.
        app.state.services = container

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(providers_v1.router, prefix="/providers")
    api_v1.include_router(disputes_v1.router, prefix="/disputes")
    app.include_router(api_v1)
    app.include_router(prometheus.router)

    @app.get("/health", tags=["health"])
    def health_check() -> Dict[str, str]:
        return {
            "status": "healthy",
            "service": f"{BRAND_NAME.lower()}-bookings",
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
