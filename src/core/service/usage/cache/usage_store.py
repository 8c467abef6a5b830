import asyncio
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, Tuple

from redis.asyncio import Redis

from src.core.logger.logger import get_logger
from src.core.service.usage.cache.lua_scripts import USAGE_RELEASE_SCRIPT, USAGE_RESERVE_SCRIPT

logger = get_logger(__name__)


class UsageStore(ABC):
    """Per-(user, period) counters with an atomic bounded increment"""

    @abstractmethod
    async def reserve(self, key: str, limit: int, ttl_seconds: int) -> Tuple[bool, int]:
        """Increment the counter unless it already reached `limit`; returns (allowed, used)"""

    @abstractmethod
    async def release(self, key: str) -> int:
        """Undo one reservation; returns the count afterwards"""

    @abstractmethod
    async def get(self, key: str) -> int:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...


class RedisUsageStore(UsageStore):
    """Redis-based usage counters; compare-and-increment runs in one Lua script"""

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def reserve(self, key: str, limit: int, ttl_seconds: int) -> Tuple[bool, int]:
        try:
            result = await self.redis.eval(USAGE_RESERVE_SCRIPT, 1, key, limit, ttl_seconds)
        except Exception as e:
            logger.error("Failed to reserve usage", extra={"usage_key": key, "error": str(e)})
            raise
        return bool(int(result[0])), int(result[1])

    async def release(self, key: str) -> int:
        try:
            result = await self.redis.eval(USAGE_RELEASE_SCRIPT, 1, key)
        except Exception as e:
            logger.error("Failed to release usage", extra={"usage_key": key, "error": str(e)})
            raise
        return int(result)

    async def get(self, key: str) -> int:
        value = await self.redis.get(key)
        return int(value) if value else 0

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error("Redis ping failed", extra={"error": str(e)})
            return False


class InMemoryUsageStore(UsageStore):
    """
    Process-local usage counters, one lock per key.
    Counters are forgotten once their TTL passes; expired keys are swept
    whenever a new counter is started.
    """

    def __init__(self, timer: Callable[[], float] = time.monotonic):
        self.timer = timer
        self._counts: Dict[str, int] = {}
        self._expires: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _live_count(self, key: str) -> int:
        expires = self._expires.get(key)
        if expires is not None and self.timer() >= expires:
            return 0
        return self._counts.get(key, 0)

    def _sweep(self, keep: str) -> None:
        now = self.timer()
        for key in [k for k, expires in self._expires.items() if now >= expires and k != keep]:
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            self._counts.pop(key, None)
            self._expires.pop(key, None)
            self._locks.pop(key, None)

    async def reserve(self, key: str, limit: int, ttl_seconds: int) -> Tuple[bool, int]:
        async with self._locks[key]:
            current = self._live_count(key)
            if current >= limit:
                return False, current
            if current == 0:
                self._sweep(keep=key)
                self._expires[key] = self.timer() + ttl_seconds
            self._counts[key] = current + 1
            return True, current + 1

    async def release(self, key: str) -> int:
        async with self._locks[key]:
            current = self._live_count(key)
            if current <= 0:
                return 0
            self._counts[key] = current - 1
            return current - 1

    async def get(self, key: str) -> int:
        return self._live_count(key)

    async def ping(self) -> bool:
        return True

    def clear(self) -> None:
        self._counts.clear()
        self._expires.clear()
        self._locks.clear()
