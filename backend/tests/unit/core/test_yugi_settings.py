"""Tests for yugi.core.config.Settings."""

from decimal import Decimal

from pydantic import ValidationError
import pytest

from yugi.core.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "YUGI_DATABASE_URL", "COMMISSION_RATE", "SERVICE_FEE"):
            monkeypatch.delenv(name, raising=False)
        app_settings = Settings()
        assert app_settings.commission_rate == Decimal("0.10")
        assert app_settings.service_fee == Decimal("1.99")
        assert app_settings.holding_period_hours == 72
        assert app_settings.refund_cutoff_hours == 24
        assert app_settings.completion_sweep_interval_seconds == 60
        assert app_settings.currency == "GBP"
        assert app_settings.database_url == ""

    def test_lock_backend_is_normalized(self):
        assert Settings(lock_backend=" REDIS ").lock_backend == "redis"

    def test_database_url_env_aliases(self, monkeypatch):
        monkeypatch.setenv("YUGI_DATABASE_URL", "sqlite:///yugi.db")
        assert Settings().database_url == "sqlite:///yugi.db"

    def test_broker_url_falls_back_to_redis_url(self):
        assert Settings(redis_url="redis://r:6379/1").broker_url == "redis://r:6379/1"
        assert (
            Settings(redis_url="redis://r:6379/1", celery_broker_url="redis://b:6379/0").broker_url
            == "redis://b:6379/0"
        )

    def test_rejects_negative_service_fee(self):
        with pytest.raises(ValidationError):
            Settings(service_fee="-0.01")
