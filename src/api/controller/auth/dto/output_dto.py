"""
Output DTOs for API endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from src.core.service.auth.models.user import User


class UserProfileDto(BaseModel):
    """Public view of a user; never carries credential fields."""

    id: str
    first_name: str
    last_name: str
    email: str
    tier: str
    tier_expires_at: Optional[datetime] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserProfileDto":
        return cls(
            id=str(user.id),
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            tier=user.tier.value,
            tier_expires_at=user.tier_expires_at,
            role=user.role.value,
            is_active=user.is_active,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


class AuthResponseDto(BaseModel):
    """DTO for successful registration or login."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds")
    refresh_expires_in: int = Field(..., description="Refresh token expiration time in seconds")
    user: UserProfileDto


class TokenRefreshResponseDto(BaseModel):
    """DTO for token refresh response. No refresh token is ever returned."""

    access_token: str = Field(..., description="New JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds")


class MessageResponseDto(BaseModel):
    success: bool = True
    message: str


class PasswordPolicyDto(BaseModel):
    min_length: int
    max_length: int
    allowed_special_characters: str
    rules: List[str]


class UsageResponseDto(BaseModel):
    tier: str
    limit: int
    used: int
    remaining: int
    period: str
    resets_at: datetime


class PromptDto(BaseModel):
    id: str
    comment: Optional[str] = None
    prompt: Optional[str] = None
    model: str
    tier: str
    created_at: datetime
    updated_at: datetime


class PromptSubmitResponseDto(BaseModel):
    prompt: PromptDto
    usage: UsageResponseDto


class PromptHistoryResponseDto(BaseModel):
    prompts: List[PromptDto]
    total: int
    limit: int
    offset: int


class AdminSessionResponseDto(BaseModel):
    session_id: str = Field(..., description="Send as the admin session header")
    admin_id: str
    expires_at: datetime
    remaining_ttl: int = Field(..., description="Seconds until the session expires without activity")


class AdminSessionStatusDto(BaseModel):
    active: bool
    remaining_ttl: int = 0
    admin_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class AdminDataResponseDto(BaseModel):
    """Envelope used by the admin console read endpoints."""

    success: bool = True
    data: Dict[str, Any]
