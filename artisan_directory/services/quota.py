"""Caller-scoped quota for contact submissions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Final, Protocol

import redis

from artisan_directory.core.config import Settings
from artisan_directory.core.errors import DependencyUnavailable

logger = logging.getLogger(__name__)

_QUOTA_KEY_TEMPLATE: Final[str] = "artisans:contact:quota:{source}"


class ContactQuota(Protocol):
    def consume(self, source: str) -> bool:
        """Record one submission for ``source``; False when over quota."""

    def release(self, source: str) -> None:
        """Give back a submission that was counted but never accepted."""


class InMemoryQuota:
    """Fixed-window counter shared by the handler threads of one process."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def consume(self, source: str) -> bool:
        now = self._clock()
        with self._lock:
            count, window_start = self._entries.get(source, (0, now))
            if now - window_start >= self.window_seconds:
                self._entries[source] = (1, now)
                return True
            if count >= self.limit:
                return False
            self._entries[source] = (count + 1, window_start)
            return True

    def release(self, source: str) -> None:
        with self._lock:
            entry = self._entries.get(source)
            if entry is None:
                return
            count, window_start = entry
            self._entries[source] = (max(0, count - 1), window_start)


class RedisQuota:
    """Fixed-window counter shared across processes through Redis."""

    def __init__(self, client: redis.Redis, limit: int, window_seconds: int) -> None:
        self.client = client
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)

    def consume(self, source: str) -> bool:
        key = _QUOTA_KEY_TEMPLATE.format(source=source)
        try:
            count = int(self.client.incr(key))
            if count == 1:
                self.client.expire(key, self.window_seconds)
        except redis.RedisError as exc:
            raise DependencyUnavailable("Contact quota store is unreachable") from exc
        return count <= self.limit

    def release(self, source: str) -> None:
        key = _QUOTA_KEY_TEMPLATE.format(source=source)
        try:
            self.client.decr(key)
        except redis.RedisError as exc:
            raise DependencyUnavailable("Contact quota store is unreachable") from exc


def build_contact_quota(app_settings: Settings) -> ContactQuota:
    """Return the quota backend selected by configuration."""

    if app_settings.contact_quota_backend == "redis":
        client = redis.Redis.from_url(app_settings.redis_url, decode_responses=True)
        logger.info("contact quota backed by redis")
        return RedisQuota(
            client,
            app_settings.contact_quota_limit,
            app_settings.contact_quota_window_seconds,
        )
    return InMemoryQuota(
        app_settings.contact_quota_limit, app_settings.contact_quota_window_seconds
    )
