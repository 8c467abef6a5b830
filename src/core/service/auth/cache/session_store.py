import asyncio
import json
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis

from src.core.logger.logger import get_logger
from src.core.service.auth.cache.lua_scripts import (
    ADMIN_LOGIN_SCRIPT, ADMIN_LOGOUT_SCRIPT, ADMIN_TOUCH_SCRIPT
)
from src.core.service.auth.models.session import AdminSession

logger = get_logger(__name__)


def _short(session_id: str) -> str:
    """Session ids are bearer secrets; only log a prefix"""
    return f"{session_id[:8]}..."


class AdminSessionStore(ABC):
    """Keyed store for admin sessions with per-admin atomic transitions"""

    @abstractmethod
    async def activate(self, session: AdminSession) -> Optional[str]:
        """Store the session as the admin's only active one; returns the superseded id"""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[AdminSession]:
        ...

    @abstractmethod
    async def get_active_id(self, admin_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def revoke(self, session_id: str, at: datetime) -> bool:
        ...

    @abstractmethod
    async def touch(self, session_id: str, at: datetime) -> bool:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...


class RedisAdminSessionStore(AdminSessionStore):
    """Redis-based admin session store"""

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self.session_key_prefix = "admin_session:"
        self.active_key_prefix = "admin_active:"

    def _session_key(self, session_id: str) -> str:
        return f"{self.session_key_prefix}{session_id}"

    def _active_key(self, admin_id: str) -> str:
        return f"{self.active_key_prefix}{admin_id}"

    def _serialize_session(self, session: AdminSession) -> str:
        return session.model_dump_json()

    def _deserialize_session(self, data: str) -> Optional[AdminSession]:
        try:
            return AdminSession.model_validate(json.loads(data))
        except (json.JSONDecodeError, PydanticValidationError):
            logger.warning("Discarding unreadable admin session record")
            return None

    async def activate(self, session: AdminSession) -> Optional[str]:
        try:
            previous = await self.redis.eval(
                ADMIN_LOGIN_SCRIPT,
                2,
                self._active_key(session.admin_id),
                self._session_key(session.id),
                session.id,
                self._serialize_session(session),
                session.max_lifetime_seconds,
                self.session_key_prefix,
                session.created_at.isoformat(),
            )
            logger.info(
                "Admin session activated",
                extra={
                    "session_id": _short(session.id),
                    "admin_id": session.admin_id,
                    "superseded": _short(previous) if previous else None
                }
            )
            return previous

        except Exception as e:
            logger.error(
                "Failed to activate admin session",
                extra={"admin_id": session.admin_id, "error": str(e)}
            )
            raise

    async def get(self, session_id: str) -> Optional[AdminSession]:
        data = await self.redis.get(self._session_key(session_id))
        if not data:
            return None
        return self._deserialize_session(data)

    async def get_active_id(self, admin_id: str) -> Optional[str]:
        return await self.redis.get(self._active_key(admin_id))

    async def revoke(self, session_id: str, at: datetime) -> bool:
        session = await self.get(session_id)
        if session is None:
            return False

        result = await self.redis.eval(
            ADMIN_LOGOUT_SCRIPT,
            2,
            self._session_key(session_id),
            self._active_key(session.admin_id),
            session_id,
            at.isoformat(),
        )
        return bool(result)

    async def touch(self, session_id: str, at: datetime) -> bool:
        session = await self.get(session_id)
        if session is None:
            return False

        result = await self.redis.eval(
            ADMIN_TOUCH_SCRIPT,
            2,
            self._session_key(session_id),
            self._active_key(session.admin_id),
            session_id,
            at.isoformat(),
        )
        return bool(result)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error("Redis ping failed", extra={"error": str(e)})
            return False


class InMemoryAdminSessionStore(AdminSessionStore):
    """
    Process-local admin session store.
    Transitions for one admin are serialized by that admin's lock.
    """

    def __init__(self):
        self._sessions: Dict[str, AdminSession] = {}
        self._active: Dict[str, str] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def activate(self, session: AdminSession) -> Optional[str]:
        async with self._locks[session.admin_id]:
            previous = self._active.get(session.admin_id)
            self._sessions[session.id] = session
            self._active[session.admin_id] = session.id

            if previous and previous != session.id and previous in self._sessions:
                old = self._sessions[previous]
                self._sessions[previous] = old.model_copy(
                    update={"revoked": True, "revoked_at": session.created_at}
                )

            self._prune(session.created_at, keep_lock=session.admin_id)
            return previous

    def _prune(self, now: datetime, keep_lock: str) -> None:
        """Forget sessions past their expiry, along with idle admins' pointers and locks"""
        expired = [sid for sid, s in self._sessions.items() if now >= s.expires_at]
        for session_id in expired:
            admin_id = self._sessions.pop(session_id).admin_id
            if self._active.get(admin_id) == session_id:
                del self._active[admin_id]
            lock = self._locks.get(admin_id)
            idle = admin_id != keep_lock and admin_id not in self._active
            if idle and lock is not None and not lock.locked():
                del self._locks[admin_id]

    async def get(self, session_id: str) -> Optional[AdminSession]:
        return self._sessions.get(session_id)

    async def get_active_id(self, admin_id: str) -> Optional[str]:
        return self._active.get(admin_id)

    async def revoke(self, session_id: str, at: datetime) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False

        async with self._locks[session.admin_id]:
            if self._active.get(session.admin_id) == session_id:
                del self._active[session.admin_id]
            current = self._sessions.get(session_id)
            if current is None or current.revoked:
                return False
            self._sessions[session_id] = current.model_copy(update={"revoked": True, "revoked_at": at})
            return True

    async def touch(self, session_id: str, at: datetime) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False

        async with self._locks[session.admin_id]:
            current = self._sessions.get(session_id)
            if current is None or current.revoked or self._active.get(current.admin_id) != session_id:
                return False
            self._sessions[session_id] = current.model_copy(update={"last_activity_at": at})
            return True

    async def ping(self) -> bool:
        return True

    def clear(self) -> None:
        self._sessions.clear()
        self._active.clear()
        self._locks.clear()
