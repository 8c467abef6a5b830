"""
Input DTOs for API endpoints.

Field lengths are enforced here; the character rules for passwords live in
CredentialValidator so that they are reported with per-rule violations.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional

from src.core.service.auth.models.user import UserTier

NAME_PATTERN = r"^[a-zA-Z\s'-]+$"


def _strip_required(value: str, label: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f'{label} cannot be empty')
    return value.strip()


class NameFieldsMixin(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50, pattern=NAME_PATTERN, description="Given name")
    last_name: str = Field(..., min_length=1, max_length=50, pattern=NAME_PATTERN, description="Family name")

    @field_validator('first_name', 'last_name', mode='before')
    @classmethod
    def strip_names(cls, v):
        return _strip_required(v, 'Name') if isinstance(v, str) else v


class RegisterRequestDto(NameFieldsMixin):
    """DTO for account registration."""

    email: str = Field(..., min_length=3, max_length=100, description="Email address")
    password: str = Field(..., min_length=8, max_length=128, description="Password meeting the password policy")


class LoginRequestDto(BaseModel):
    """DTO for email/password login."""

    email: str = Field(..., min_length=1, max_length=100, description="Email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class AdminLoginRequestDto(LoginRequestDto):
    """DTO for admin console login."""


class ForgotPasswordRequestDto(BaseModel):
    email: str = Field(..., min_length=1, max_length=100, description="Email address of the account")


class ResetPasswordRequestDto(BaseModel):
    token: str = Field(..., min_length=1, max_length=256, description="Token from the reset link")
    password: str = Field(..., min_length=8, max_length=128, description="New password")


class ChangePasswordRequestDto(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128, description="Current password")
    new_password: str = Field(..., min_length=8, max_length=128, description="New password")


class RefreshTokenRequestDto(BaseModel):
    """DTO for token refresh request."""

    refresh_token: str = Field(..., min_length=1, description="Valid refresh token")

    @field_validator('refresh_token')
    @classmethod
    def validate_refresh_token(cls, v):
        return _strip_required(v, 'Refresh token')


class LogoutRequestDto(BaseModel):
    """DTO for logout request. Tokens are discarded client-side."""

    refresh_token: Optional[str] = Field(None, description="Refresh token being discarded")


class UpdateProfileRequestDto(NameFieldsMixin):
    """Only names are editable through the profile endpoint."""


class PromptGenerateRequestDto(BaseModel):
    comment: str = Field(..., min_length=1, max_length=1000, description="What the structured prompt should do")
    model: Optional[str] = Field(None, max_length=100, description="Model identifier")

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, v):
        return _strip_required(v, 'Comment')


class PromptCommentUpdateDto(BaseModel):
    comment: str = Field(..., min_length=1, max_length=1000, description="New comment")

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, v):
        return _strip_required(v, 'Comment')


class CreateOrderRequestDto(BaseModel):
    plan_type: str = Field(..., min_length=1, max_length=50, description="Plan identifier")


class UpdateUserTierRequestDto(BaseModel):
    tier: UserTier = Field(..., description="New tier")
    duration_days: Optional[int] = Field(None, ge=1, le=366, description="Paid tier duration; omit for no expiry")


class UpdateUserStatusRequestDto(BaseModel):
    is_active: bool = Field(..., description="Whether the account may sign in")
