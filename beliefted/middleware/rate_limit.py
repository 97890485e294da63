"""
Fixed-window rate limiting keyed by ``<feature>:<userId-or-ip>``.

Windows live behind a RateLimitStore so a deployment with several instances
can share them through Redis. With the in-memory store each process enforces
its own limit, which is enough for abuse mitigation but not for exact quotas.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Callable, Dict, List, Optional

from fastapi import Request
from redis import asyncio as aioredis

from ..core.errors import RateLimitError

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64


@dataclass
class RateEntry:
    count: int
    reset_at: int  # epoch milliseconds


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int


class RateLimitStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[RateEntry]:
        ...

    @abstractmethod
    async def set(self, key: str, entry: RateEntry) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def purge_expired(self, now: int) -> int:
        """Drop windows that ended at or before now. Returns how many were dropped."""
        return 0


class MemoryRateLimitStore(RateLimitStore):
    def __init__(self):
        self._entries: Dict[str, RateEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[RateEntry]:
        return self._entries.get(key)

    async def set(self, key: str, entry: RateEntry) -> None:
        self._entries[key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self, now: int) -> int:
        expired: List[str] = [key for key, entry in self._entries.items() if now >= entry.reset_at]
        for key in expired:
            del self._entries[key]
        return len(expired)


class RedisRateLimitStore(RateLimitStore):
    """Windows stored as Redis hashes that expire when the window ends"""

    def __init__(self, redis: aioredis.Redis, prefix: str = "ratelimit:"):
        self.redis = redis
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[RateEntry]:
        raw = await self.redis.hgetall(self._key(key))
        if not raw:
            return None
        return RateEntry(count=int(raw["count"]), reset_at=int(raw["reset_at"]))

    async def set(self, key: str, entry: RateEntry) -> None:
        redis_key = self._key(key)
        await self.redis.hset(redis_key, mapping={"count": entry.count, "reset_at": entry.reset_at})
        await self.redis.pexpireat(redis_key, entry.reset_at)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], int] = _now_ms,
        sweep_every: int = 500
    ):
        self.store = store if store is not None else MemoryRateLimitStore()
        self.clock = clock
        self.sweep_every = sweep_every
        self._checks = 0
        self._locks: Optional[List[asyncio.Lock]] = None

    def _lock_for(self, key: str) -> asyncio.Lock:
        # Created on first use so they belong to the serving loop
        if self._locks is None:
            self._locks = [asyncio.Lock() for _ in range(LOCK_STRIPES)]
        return self._locks[hash(key) % LOCK_STRIPES]

    async def check(self, key: str, limit: int, window_ms: int) -> RateLimitResult:
        """Count one request against key's window and report whether it may proceed"""
        now = self.clock()
        await self._maybe_sweep(now)

        async with self._lock_for(key):
            entry = await self.store.get(key)

            if entry is None or now >= entry.reset_at:
                entry = RateEntry(count=1, reset_at=now + window_ms)
                await self.store.set(key, entry)
                return RateLimitResult(allowed=True, remaining=limit - 1, reset_at=entry.reset_at)

            if entry.count >= limit:
                return RateLimitResult(allowed=False, remaining=0, reset_at=entry.reset_at)

            entry.count += 1
            await self.store.set(key, entry)
            return RateLimitResult(allowed=True, remaining=limit - entry.count, reset_at=entry.reset_at)

    async def enforce(self, key: str, limit: int, window_ms: int) -> RateLimitResult:
        """Like check, but raises RateLimitError when the window is exhausted"""
        result = await self.check(key, limit, window_ms)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {key}")
            retry_after = -(-(result.reset_at - self.clock()) // 1000)
            raise RateLimitError(key, retry_after)
        return result

    async def _maybe_sweep(self, now: int) -> None:
        self._checks += 1
        if self.sweep_every <= 0 or self._checks % self.sweep_every:
            return
        purged = await self.store.purge_expired(now)
        if purged:
            logger.debug(f"Purged {purged} expired rate limit windows")


def get_client_ip(request: Request) -> str:
    """Get client IP from request"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_rate_limiter(request: Request) -> RateLimiter:
    """FastAPI dependency returning the limiter created at startup"""
    return request.app.state.rate_limiter
