"""
Keyed mutual exclusion for booking transitions and ledger mutations.

Every status transition holds the booking's lock and every ledger mutation
holds the provider's lock. Acquisition is bounded: a caller that cannot get
the lock within the timeout gets ``ContentionError`` instead of waiting
forever. Lock ordering is booking -> provider, never the reverse.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import TYPE_CHECKING, ContextManager, Dict, Iterator, Optional, Protocol

from redis import Redis
from redis.exceptions import LockError, RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .exceptions import ContentionError

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}:mutex"


def provider_lock_key(provider_id: str) -> str:
    return f"provider:{provider_id}:ledger"


def _scope(key: str) -> str:
    head = key.split(":", 1)[0]
    return head if head in {"booking", "provider"} else "other"


class LockManager(Protocol):
    def hold(self, key: str, timeout_s: Optional[float] = None) -> ContextManager[None]:
        ...


class LocalLockManager:
    """In-process keyed locks. Entries are dropped once no thread holds or waits on them."""

    def __init__(self, timeout_s: float = 2.0):
        self.timeout_s = timeout_s
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._users.get(key, 0) - 1
            if remaining <= 0:
                self._users.pop(key, None)
                self._locks.pop(key, None)
            else:
                self._users[key] = remaining

    @property
    def tracked_keys(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str, timeout_s: Optional[float] = None) -> Iterator[None]:
        wait = self.timeout_s if timeout_s is None else timeout_s
        scope = _scope(key)
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=wait):
                prometheus_metrics.record_lock(scope, "acquire", "blocked")
                logger.warning("keyed_lock_contention", extra={"key": key, "timeout_s": wait})
                raise ContentionError(key, wait)
            prometheus_metrics.record_lock(scope, "acquire", "success")
            try:
                yield
            finally:
                lock.release()
                prometheus_metrics.record_lock(scope, "release", "success")
        finally:
            self._checkin(key)


class RedisLockManager:
    """Keyed locks shared across processes via redis-py's ``Lock``.

    Unlike a cache, a lock that cannot be taken must not be treated as
    taken: any Redis failure surfaces as ``ContentionError``.
    """

    def __init__(
        self,
        client: Redis,
        *,
        namespace: str = "yugi",
        timeout_s: float = 2.0,
        ttl_s: int = 90,
    ):
        self.client = client
        self.namespace = namespace
        self.timeout_s = timeout_s
        self.ttl_s = ttl_s

    def _namespaced_key(self, key: str) -> str:
        return f"{self.namespace}:lock:{key}"

    @contextmanager
    def hold(self, key: str, timeout_s: Optional[float] = None) -> Iterator[None]:
        wait = self.timeout_s if timeout_s is None else timeout_s
        scope = _scope(key)
        lock = self.client.lock(self._namespaced_key(key), timeout=self.ttl_s)
        try:
            acquired = bool(lock.acquire(blocking=True, blocking_timeout=wait))
        except RedisError as exc:
            prometheus_metrics.record_lock(scope, "acquire", "error")
            logger.warning(
                "keyed_lock_redis_acquire_failed",
                extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise ContentionError(key, wait) from exc
        if not acquired:
            prometheus_metrics.record_lock(scope, "acquire", "blocked")
            raise ContentionError(key, wait)

        prometheus_metrics.record_lock(scope, "acquire", "success")
        started = time.monotonic()
        try:
            yield
        finally:
            try:
                lock.release()
                prometheus_metrics.record_lock(scope, "release", "success")
            except (LockError, RedisError) as exc:
                # TTL expired mid-operation or Redis went away; the key frees itself.
                prometheus_metrics.record_lock(scope, "release", "error")
                logger.warning(
                    "keyed_lock_redis_release_failed",
                    extra={
                        "key": key,
                        "held_s": round(time.monotonic() - started, 3),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )


def build_lock_manager(app_settings: "Settings") -> LockManager:
    if app_settings.lock_backend == "redis":
        client = Redis.from_url(app_settings.redis_url, encoding="utf-8", decode_responses=True)
        return RedisLockManager(
            client,
            namespace=app_settings.lock_namespace,
            timeout_s=app_settings.lock_timeout_seconds,
            ttl_s=app_settings.lock_ttl_seconds,
        )
    return LocalLockManager(timeout_s=app_settings.lock_timeout_seconds)
