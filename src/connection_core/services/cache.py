# src/connection_core/services/cache.py
"""Small TTL cache services used for notification preferences.

The in-memory backend is process-local. The Redis backend lets several
workers share entries; when Redis stops answering it degrades to an
in-process cache so callers never see cache failures.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from threading import Lock
from typing import Any, Protocol

import redis

from connection_core.core.settings import Settings, settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Minimal key/value cache with per-entry expiry."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryTTLCache:
    """Lock-guarded dictionary whose entries expire after their TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= now:
                self._entries.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisCache:
    """Redis-backed cache storing JSON values under a key prefix."""

    def __init__(
        self,
        url: str,
        *,
        prefix: str = "connection-core:",
        fallback: InMemoryTTLCache | None = None,
        client: Any | None = None,
    ) -> None:
        self._prefix = prefix
        self._fallback = fallback or InMemoryTTLCache()
        self._redis = client if client is not None else redis.from_url(url)  # type: ignore[no-untyped-call]

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _degrade(self, exc: Exception) -> None:
        logger.warning("Redis cache unavailable, using in-process cache: %s", exc)
        self._redis = None

    def get(self, key: str) -> Any | None:
        if self._redis is not None:
            try:
                raw = self._redis.get(self._key(key))
                return None if raw is None else json.loads(raw)
            except (redis.RedisError, ValueError) as exc:
                self._degrade(exc)
        return self._fallback.get(key)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        if self._redis is not None:
            try:
                self._redis.set(self._key(key), json.dumps(value), ex=int(ttl_seconds))
                return
            except redis.RedisError as exc:
                self._degrade(exc)
        self._fallback.set(key, value, ttl_seconds)

    def delete(self, key: str) -> None:
        if self._redis is not None:
            try:
                self._redis.delete(self._key(key))
            except redis.RedisError as exc:
                self._degrade(exc)
        self._fallback.delete(key)

    def clear(self) -> None:
        if self._redis is not None:
            try:
                keys = list(self._redis.scan_iter(match=f"{self._prefix}*"))
                if keys:
                    self._redis.delete(*keys)
            except redis.RedisError as exc:
                self._degrade(exc)
        self._fallback.clear()


def build_cache_backend(config: Settings | None = None) -> CacheBackend:
    """Return the cache backend selected by ``PREFERENCE_CACHE_BACKEND``."""
    config = config or settings
    if config.preference_cache_backend.lower() == "redis":
        return RedisCache(config.redis_url)
    return InMemoryTTLCache()
