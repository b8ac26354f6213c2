"""
Unit tests for yugi.core.locks.

Coverage:
1) Key generation
2) In-process locks: exclusion, bounded wait, cleanup
3) Redis locks: namespacing, TTL, fail-closed on Redis errors
4) Backend selection from settings
"""

import threading
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError

from yugi.core.config import Settings
from yugi.core.exceptions import ContentionError
from yugi.core.locks import (
    LocalLockManager,
    RedisLockManager,
    booking_lock_key,
    build_lock_manager,
    provider_lock_key,
)


class TestKeyGeneration:
    def test_booking_key_format(self):
        assert booking_lock_key("ABC123") == "booking:ABC123:mutex"

    def test_provider_key_format(self):
        assert provider_lock_key("prov_1") == "provider:prov_1:ledger"


class TestLocalLockManager:
    def test_hold_and_release(self):
        locks = LocalLockManager(timeout_s=0.1)
        with locks.hold("booking:1:mutex"):
            assert locks.tracked_keys == 1
        assert locks.tracked_keys == 0

    def test_different_keys_do_not_block(self):
        locks = LocalLockManager(timeout_s=0.1)
        with locks.hold(booking_lock_key("1")):
            with locks.hold(provider_lock_key("p")):
                assert locks.tracked_keys == 2

    def test_contention_raises_after_timeout(self):
        locks = LocalLockManager(timeout_s=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("booking:1:mutex"):
                held.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert held.wait(2)
            with pytest.raises(ContentionError) as exc_info:
                with locks.hold("booking:1:mutex"):
                    pass
            assert exc_info.value.details["key"] == "booking:1:mutex"
        finally:
            release.set()
            thread.join(2)
        assert locks.tracked_keys == 0

    def test_released_on_exception(self):
        locks = LocalLockManager(timeout_s=0.05)
        with pytest.raises(ValueError):
            with locks.hold("booking:1:mutex"):
                raise ValueError("boom")
        with locks.hold("booking:1:mutex"):
            pass

    def test_per_call_timeout_override(self):
        locks = LocalLockManager(timeout_s=5.0)
        inner = threading.Event()

        with locks.hold("provider:p:ledger"):

            def contender():
                try:
                    with locks.hold("provider:p:ledger", timeout_s=0.01):
                        pass
                except ContentionError:
                    inner.set()

            thread = threading.Thread(target=contender)
            thread.start()
            thread.join(2)
        assert inner.is_set()


class TestRedisLockManager:
    def _manager(self, lock: MagicMock) -> tuple:
        client = MagicMock()
        client.lock.return_value = lock
        return client, RedisLockManager(client, namespace="yugi", timeout_s=2.0, ttl_s=90)

    def test_acquire_uses_namespaced_key_and_ttl(self):
        lock = MagicMock()
        lock.acquire.return_value = True
        client, manager = self._manager(lock)

        with manager.hold("booking:ABC123:mutex"):
            pass

        client.lock.assert_called_once_with("yugi:lock:booking:ABC123:mutex", timeout=90)
        lock.acquire.assert_called_once_with(blocking=True, blocking_timeout=2.0)
        lock.release.assert_called_once()

    def test_not_acquired_raises_contention(self):
        lock = MagicMock()
        lock.acquire.return_value = False
        _, manager = self._manager(lock)

        with pytest.raises(ContentionError):
            with manager.hold("booking:ABC123:mutex"):
                pass
        lock.release.assert_not_called()

    def test_redis_down_fails_closed(self):
        lock = MagicMock()
        lock.acquire.side_effect = RedisConnectionError("down")
        _, manager = self._manager(lock)

        body = MagicMock()
        with pytest.raises(ContentionError):
            with manager.hold("provider:p:ledger"):
                body()
        body.assert_not_called()

    def test_release_error_is_logged_not_raised(self, caplog):
        lock = MagicMock()
        lock.acquire.return_value = True
        lock.release.side_effect = LockError("expired")
        _, manager = self._manager(lock)

        with manager.hold("booking:ABC123:mutex"):
            pass
        assert any("keyed_lock_redis_release_failed" in r.getMessage() for r in caplog.records)

    def test_released_when_body_raises(self):
        lock = MagicMock()
        lock.acquire.return_value = True
        _, manager = self._manager(lock)

        with pytest.raises(ValueError):
            with manager.hold("booking:ABC123:mutex"):
                raise ValueError("boom")
        lock.release.assert_called_once()


class TestBuildLockManager:
    def test_local_backend(self):
        manager = build_lock_manager(Settings(lock_backend="local", lock_timeout_seconds=1.5))
        assert isinstance(manager, LocalLockManager)
        assert manager.timeout_s == 1.5

    def test_redis_backend(self):
        app_settings = Settings(
            lock_backend="redis", redis_url="redis://cache:6379/2", lock_ttl_seconds=30
        )
        with patch("yugi.core.locks.Redis") as mock_redis:
            manager = build_lock_manager(app_settings)
        mock_redis.from_url.assert_called_once_with(
            "redis://cache:6379/2", encoding="utf-8", decode_responses=True
        )
        assert isinstance(manager, RedisLockManager)
        assert manager.ttl_s == 30
