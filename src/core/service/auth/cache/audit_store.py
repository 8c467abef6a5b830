import json
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional, Tuple

from redis.asyncio import Redis

from src.core.clock import Clock, utc_now
from src.core.logger.logger import get_logger
from src.core.service.auth.cache.lua_scripts import FAILED_LOGIN_SCRIPT
from src.core.service.auth.models.audit import AuditEvent, AuthEventStatus, AuthEventType
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

MAX_RETAINED_EVENTS = 10000


class AuditStore(ABC):
    """Audit trail plus failed-login lockout counters"""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self.max_failed_attempts = settings.MAX_FAILED_LOGIN_ATTEMPTS
        self.lockout_window = timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES)
        self.retention = timedelta(days=settings.AUDIT_LOG_RETENTION_DAYS)

    @abstractmethod
    async def add_event(self, event: AuditEvent) -> None:
        ...

    @abstractmethod
    async def recent_events(self, limit: int = 100, admin_only: bool = False) -> List[AuditEvent]:
        """Newest first"""

    @abstractmethod
    async def record_failed_login(self, email: str) -> int:
        """Count a failed attempt and return the attempts within the current window"""

    @abstractmethod
    async def failed_login_count(self, email: str) -> int:
        ...

    @abstractmethod
    async def reset_failed_logins(self, email: str) -> None:
        ...

    @abstractmethod
    async def locked_account_count(self) -> int:
        ...

    async def is_locked(self, email: str) -> bool:
        return await self.failed_login_count(email) >= self.max_failed_attempts

    async def count_events(
        self,
        event_type: AuthEventType,
        since: datetime,
        status: Optional[AuthEventStatus] = None
    ) -> int:
        events = await self.recent_events(limit=MAX_RETAINED_EVENTS)
        return sum(
            1 for e in events
            if e.event_type == event_type
            and e.timestamp >= since
            and (status is None or e.status == status)
        )


class RedisAuditStore(AuditStore):
    """Redis-based store for audit events"""

    def __init__(self, redis_client: Redis, clock: Clock = utc_now):
        super().__init__(clock)
        self.redis = redis_client
        self.events_key = "audit:events"
        self.admin_events_key = "audit:admin_events"
        self.failed_attempts_key_prefix = "audit:failed_login:"

    def _failed_key(self, email: str) -> str:
        return f"{self.failed_attempts_key_prefix}{email.lower()}"

    async def add_event(self, event: AuditEvent) -> None:
        try:
            payload = event.model_dump_json()
            ttl_seconds = max(1, int(self.retention.total_seconds()))
            keys = [self.events_key]
            if event.is_admin_event:
                keys.append(self.admin_events_key)

            for key in keys:
                await self.redis.lpush(key, payload)
                await self.redis.ltrim(key, 0, MAX_RETAINED_EVENTS - 1)
                await self.redis.expire(key, ttl_seconds)

        except Exception as e:
            logger.error(
                "Failed to store audit event",
                extra={"event_type": event.event_type.value, "error": str(e)}
            )
            raise

    async def recent_events(self, limit: int = 100, admin_only: bool = False) -> List[AuditEvent]:
        key = self.admin_events_key if admin_only else self.events_key
        raw_events = await self.redis.lrange(key, 0, max(0, limit - 1))
        cutoff = self.clock() - self.retention

        events = []
        for raw in raw_events:
            try:
                event = AuditEvent.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValueError):
                continue
            if event.timestamp >= cutoff:
                events.append(event)
        return events

    async def record_failed_login(self, email: str) -> int:
        key = self._failed_key(email)
        window_seconds = max(1, int(self.lockout_window.total_seconds()))
        try:
            attempts = await self.redis.eval(FAILED_LOGIN_SCRIPT, 1, key, window_seconds)
        except Exception as e:
            logger.error("Failed to record failed login", extra={"error": str(e)})
            raise
        return int(attempts)

    async def failed_login_count(self, email: str) -> int:
        attempts = await self.redis.get(self._failed_key(email))
        return int(attempts) if attempts else 0

    async def reset_failed_logins(self, email: str) -> None:
        await self.redis.delete(self._failed_key(email))

    async def locked_account_count(self) -> int:
        locked = 0
        async for key in self.redis.scan_iter(match=f"{self.failed_attempts_key_prefix}*"):
            attempts = await self.redis.get(key)
            if attempts and int(attempts) >= self.max_failed_attempts:
                locked += 1
        return locked


class InMemoryAuditStore(AuditStore):
    """Process-local audit store"""

    def __init__(self, clock: Clock = utc_now):
        super().__init__(clock)
        self._events: Deque[AuditEvent] = deque(maxlen=MAX_RETAINED_EVENTS)
        self._failed: Dict[str, Tuple[int, datetime]] = {}

    async def add_event(self, event: AuditEvent) -> None:
        self._events.appendleft(event)

    async def recent_events(self, limit: int = 100, admin_only: bool = False) -> List[AuditEvent]:
        cutoff = self.clock() - self.retention
        events = [
            e for e in self._events
            if e.timestamp >= cutoff and (not admin_only or e.is_admin_event)
        ]
        return events[:limit]

    def _live_entry(self, email: str) -> Optional[Tuple[int, datetime]]:
        entry = self._failed.get(email.lower())
        if entry is None:
            return None
        if self.clock() - entry[1] >= self.lockout_window:
            del self._failed[email.lower()]
            return None
        return entry

    async def record_failed_login(self, email: str) -> int:
        entry = self._live_entry(email)
        if entry is None:
            self._failed[email.lower()] = (1, self.clock())
            return 1
        attempts = entry[0] + 1
        self._failed[email.lower()] = (attempts, entry[1])
        return attempts

    async def failed_login_count(self, email: str) -> int:
        entry = self._live_entry(email)
        return entry[0] if entry else 0

    async def reset_failed_logins(self, email: str) -> None:
        self._failed.pop(email.lower(), None)

    async def locked_account_count(self) -> int:
        locked = 0
        for email in list(self._failed):
            entry = self._live_entry(email)
            if entry and entry[0] >= self.max_failed_attempts:
                locked += 1
        return locked

    def clear(self) -> None:
        self._events.clear()
        self._failed.clear()
