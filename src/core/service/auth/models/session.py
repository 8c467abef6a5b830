from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Admin session state as evaluated at a given instant"""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class AdminSession(BaseModel):
    """Server-tracked admin session"""
    id: str
    admin_id: str
    created_at: datetime
    last_activity_at: datetime
    idle_ttl_seconds: int
    max_lifetime_seconds: int
    revoked: bool = False
    revoked_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def expires_at(self) -> datetime:
        """Idle expiry capped by the absolute lifetime"""
        idle_expiry = self.last_activity_at + timedelta(seconds=self.idle_ttl_seconds)
        hard_expiry = self.created_at + timedelta(seconds=self.max_lifetime_seconds)
        return min(idle_expiry, hard_expiry)

    def state_at(self, now: datetime) -> SessionState:
        if self.revoked:
            return SessionState.REVOKED
        if now >= self.expires_at:
            return SessionState.EXPIRED
        return SessionState.ACTIVE

    def remaining_ttl(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))


class AdminSessionStatus(BaseModel):
    """Result of a read-only status check"""
    active: bool
    remaining_ttl: int = Field(0, description="Seconds until the session expires")
    session: Optional[AdminSession] = None
