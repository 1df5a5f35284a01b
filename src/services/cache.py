"""Per-call DTMF history for the voice adapter.

The voice gateway posts only the digits pressed since the last prompt, so
the digits collected so far are kept here under the call's key.  Values
are plain strings with a time-to-live.  Redis holds them when configured
and reachable; otherwise, and whenever a Redis command fails, they live
in a bounded dictionary inside this process.
"""

from __future__ import annotations

import contextlib
import time

import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger(__name__)


class MemoryHistory:
    """Bounded ``key -> (digits, deadline)`` map.

    When full, expired entries are pruned first and then the oldest
    insertions are dropped.
    """

    __slots__ = ("_entries", "_max_entries")

    def __init__(self, max_entries: int = 10_000) -> None:
        self._max_entries = max_entries
        self._entries: dict[str, tuple[str, float | None]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and time.monotonic() > deadline:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: str, ttl_seconds: int | None) -> None:
        self._entries.pop(key, None)
        if len(self._entries) >= self._max_entries:
            now = time.monotonic()
            self._entries = {
                k: e for k, e in self._entries.items() if e[1] is None or e[1] >= now
            }
            while len(self._entries) >= self._max_entries:
                del self._entries[next(iter(self._entries))]
        deadline = time.monotonic() + ttl_seconds if ttl_seconds is not None else None
        self._entries[key] = (value, deadline)

    def drop(self, key: str) -> None:
        self._entries.pop(key, None)


class SessionStore:
    """Namespaced string store; Redis when available, :class:`MemoryHistory` otherwise.

    Redis is pinged once, on first use.  A failed ping or a failed command
    switches the store to memory for the rest of the process lifetime.
    """

    __slots__ = ("_default_ttl", "_memory", "_namespace", "_redis", "_use_redis")

    def __init__(
        self,
        *,
        redis_url: str | None = None,
        namespace: str = "",
        default_ttl: int | None = None,
        max_memory_entries: int = 10_000,
    ) -> None:
        self._namespace = namespace
        self._default_ttl = default_ttl
        self._memory = MemoryHistory(max_memory_entries)
        self._redis: aioredis.Redis | None = None
        # None until the first ping has answered.
        self._use_redis: bool | None = None
        if redis_url:
            try:
                self._redis = aioredis.Redis.from_url(redis_url, decode_responses=True)
            except ValueError:
                logger.warning("session_store.bad_redis_url", exc_info=True)
        if self._redis is None:
            self._use_redis = False

    @property
    def backend_name(self) -> str:
        return "redis" if self._use_redis else "memory"

    async def ping_redis(self) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except Exception:
            logger.warning("session_store.redis_ping_failed", exc_info=True)
            return False

    async def _redis_ready(self) -> bool:
        if self._use_redis is None:
            self._use_redis = await self.ping_redis()
            if self._use_redis:
                logger.info("session_store.redis_connected", namespace=self._namespace)
            else:
                logger.warning("session_store.using_memory", namespace=self._namespace)
        return self._use_redis

    def _degrade(self, operation: str) -> None:
        logger.warning("session_store.redis_failed", operation=operation, exc_info=True)
        self._use_redis = False

    async def get(self, key: str, default: str | None = None) -> str | None:
        key = self._namespace + key
        if await self._redis_ready():
            try:
                value = await self._redis.get(key)  # type: ignore[union-attr]
            except Exception:
                self._degrade("get")
            else:
                return default if value is None else value
        value = self._memory.get(key)
        return default if value is None else value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        key = self._namespace + key
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if await self._redis_ready():
            try:
                # Redis rejects a zero expiry; the key is gone immediately either way.
                if ttl is not None and ttl <= 0:
                    await self._redis.delete(key)  # type: ignore[union-attr]
                else:
                    await self._redis.set(key, value, ex=ttl)  # type: ignore[union-attr]
                return
            except Exception:
                self._degrade("set")
        self._memory.put(key, value, ttl)

    async def delete(self, key: str) -> None:
        key = self._namespace + key
        if await self._redis_ready():
            try:
                await self._redis.delete(key)  # type: ignore[union-attr]
                return
            except Exception:
                self._degrade("delete")
        self._memory.drop(key)

    async def close(self) -> None:
        if self._redis is not None:
            with contextlib.suppress(Exception):
                await self._redis.aclose()
