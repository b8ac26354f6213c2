# backend/yugi/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """True inside a pytest run. The app then skips starting the completion scheduler."""
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# CI injects its environment directly; locally we read backend/.env
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking lifecycle and settlement ledger."""

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field(default="development")

    # Persistence: empty means the in-memory store
    database_url: str = Field(
        default="",
        validation_alias=AliasChoices("YUGI_DATABASE_URL", "DATABASE_URL"),
    )

    # Redis backs distributed locks and the Celery broker
    redis_url: str = Field(default="redis://localhost:6379/0")
    celery_broker_url: Optional[str] = Field(default=None)

    # Keyed locks
    lock_backend: Literal["local", "redis"] = Field(default="local")
    lock_timeout_seconds: float = Field(default=2.0, gt=0)
    lock_ttl_seconds: int = Field(default=90, gt=0)
    lock_namespace: str = Field(default="yugi")

    # Money rules
    currency: Literal["GBP"] = Field(default="GBP")
    commission_rate: Decimal = Field(default=Decimal("0.10"), ge=0, lt=1)
    service_fee: Decimal = Field(default=Decimal("1.99"), ge=0)
    holding_period_hours: int = Field(default=72, ge=0)
    refund_cutoff_hours: int = Field(default=24, gt=0)

    # Completion sweep
    completion_sweep_interval_seconds: float = Field(default=60.0, gt=0)
    scheduler_enabled: bool = Field(default=True)

    @field_validator("lock_backend", mode="before")
    @classmethod
    def _normalize_lock_backend(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url


settings = Settings()
