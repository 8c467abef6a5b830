"""
Authenticated principals.

User requests are authenticated statelessly by a bearer token; admin requests by a
server-side session that can be revoked. Both resolve to an AuthenticatedPrincipal
so downstream code can ask who is calling without caring how it was proven.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from src.core.service.auth.models.user import User, UserRole


class AuthenticatedPrincipal(BaseModel):
    subject_id: str
    role: UserRole
    expires_at: Optional[datetime] = None

    @property
    def is_revocable(self) -> bool:
        return False


class UserPrincipal(AuthenticatedPrincipal):
    """Caller proven by a verified access token"""
    user: User
    token_id: str


class AdminPrincipal(AuthenticatedPrincipal):
    """Caller proven by an active admin session"""
    session_id: str

    @property
    def is_revocable(self) -> bool:
        return True
