"""
User model for persistent database storage
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class UserTier(str, Enum):
    """Quality tier / subscription level"""
    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """User entity as held by the account directory"""
    id: UUID
    first_name: str
    last_name: str
    email: str
    password_hash: str
    tier: UserTier = UserTier.FREE
    tier_expires_at: Optional[datetime] = None
    role: UserRole = UserRole.USER
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def effective_tier(self, now: datetime) -> UserTier:
        """Paid tiers lapse back to free once their term ends"""
        if self.tier != UserTier.FREE and self.tier_expires_at is not None and self.tier_expires_at <= now:
            return UserTier.FREE
        return self.tier
