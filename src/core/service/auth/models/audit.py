from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class AuthEventType(str, Enum):
    """Types of authentication events"""
    USER_REGISTERED = "user_registered"
    LOGIN = "login"
    ACCOUNT_LOCKED = "account_locked"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"
    PASSWORD_CHANGED = "password_changed"
    ADMIN_LOGIN = "admin_login"
    ADMIN_LOGOUT = "admin_logout"
    ADMIN_ACTION = "admin_action"


class AuthEventStatus(str, Enum):
    """Status of authentication events"""
    SUCCESS = "success"
    FAILURE = "failure"
    BLOCKED = "blocked"


class AuditEvent(BaseModel):
    """Audit log entry for authentication and admin events"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: AuthEventType
    status: AuthEventStatus
    subject: str  # email for user events, admin id for admin events
    ip_address: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_admin_event(self) -> bool:
        return self.event_type in (
            AuthEventType.ADMIN_LOGIN,
            AuthEventType.ADMIN_LOGOUT,
            AuthEventType.ADMIN_ACTION,
        )
