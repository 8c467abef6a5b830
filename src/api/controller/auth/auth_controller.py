"""
Authentication controller: registration, login, password reset and token refresh.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from src.api.controller.auth.dto.input_dto import (
    RegisterRequestDto, LoginRequestDto, ForgotPasswordRequestDto, ResetPasswordRequestDto,
    ChangePasswordRequestDto, RefreshTokenRequestDto, LogoutRequestDto
)
from src.api.controller.auth.dto.output_dto import (
    AuthResponseDto, TokenRefreshResponseDto, MessageResponseDto, PasswordPolicyDto, UserProfileDto
)
from src.api.controller.auth.dto.error_responses import AUTH_ERROR_RESPONSES, ErrorResponse
from src.api.middleware.authentication.jwt_bearer import get_current_user
from src.api.utils.client import get_client_ip
from src.core.dependencies import get_account_service, get_token_service
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.credential_validator import SPECIAL_CHARACTERS, VIOLATION_MESSAGES, PasswordViolation
from src.core.service.auth.jwt_service import TokenService
from src.core.service.auth.models.token import TokenPair
from src.core.service.auth.models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])
token_router = APIRouter(tags=["Authentication"])


def _auth_response(user: User, tokens: TokenPair) -> AuthResponseDto:
    return AuthResponseDto(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        expires_in=tokens.expires_in,
        refresh_expires_in=tokens.refresh_expires_in,
        user=UserProfileDto.from_user(user)
    )


@router.post(
    "/register",
    response_model=AuthResponseDto,
    status_code=status.HTTP_201_CREATED,
    responses={**AUTH_ERROR_RESPONSES, 409: {"model": ErrorResponse, "description": "Email already registered"}}
)
async def register(
    body: RegisterRequestDto,
    request: Request,
    account_service: AccountService = Depends(get_account_service)
):
    """
    Create an account and return a token pair.

    The password must contain a lowercase letter, an uppercase letter, a digit
    and one of `@$!%*?&`, and nothing outside those classes.
    """
    user, tokens = await account_service.register(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        ip_address=get_client_ip(request)
    )
    return _auth_response(user, tokens)


@router.post("/login", response_model=AuthResponseDto, responses=AUTH_ERROR_RESPONSES)
async def login(
    body: LoginRequestDto,
    request: Request,
    account_service: AccountService = Depends(get_account_service)
):
    """Exchange email and password for an access/refresh token pair."""
    user, tokens = await account_service.login(body.email, body.password, ip_address=get_client_ip(request))
    return _auth_response(user, tokens)


@router.post("/forgot-password", response_model=MessageResponseDto)
async def forgot_password(
    body: ForgotPasswordRequestDto,
    request: Request,
    account_service: AccountService = Depends(get_account_service)
):
    """Request a reset link. The answer is identical whether or not the account exists."""
    message = await account_service.forgot_password(body.email, ip_address=get_client_ip(request))
    return MessageResponseDto(message=message)


@router.post("/reset-password", response_model=MessageResponseDto, responses=AUTH_ERROR_RESPONSES)
async def reset_password(
    body: ResetPasswordRequestDto,
    request: Request,
    account_service: AccountService = Depends(get_account_service)
):
    await account_service.reset_password(body.token, body.password, ip_address=get_client_ip(request))
    return MessageResponseDto(message="Password has been reset. Please sign in with your new password.")


@router.post("/change-password", response_model=MessageResponseDto, responses=AUTH_ERROR_RESPONSES)
async def change_password(
    body: ChangePasswordRequestDto,
    user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service)
):
    await account_service.change_password(user, body.current_password, body.new_password)
    return MessageResponseDto(message="Password changed successfully")


@router.get("/password-policy", response_model=PasswordPolicyDto)
async def password_policy():
    """Describe the password rules enforced on registration and reset."""
    return PasswordPolicyDto(
        min_length=8,
        max_length=128,
        allowed_special_characters="".join(sorted(SPECIAL_CHARACTERS)),
        rules=[VIOLATION_MESSAGES[v] for v in PasswordViolation if v != PasswordViolation.EMPTY]
    )


@token_router.post("/refresh", response_model=TokenRefreshResponseDto, responses=AUTH_ERROR_RESPONSES)
async def refresh_token(
    body: RefreshTokenRequestDto,
    token_service: TokenService = Depends(get_token_service)
):
    """
    Exchange a refresh token for a new access token.

    The refresh token itself is neither rotated nor extended.
    """
    issued = token_service.refresh(body.refresh_token)
    return TokenRefreshResponseDto(access_token=issued.token, expires_in=issued.expires_in)


@token_router.post("/logout", response_model=MessageResponseDto)
async def logout(body: Optional[LogoutRequestDto] = None):
    """Tokens are stateless; the client discards them. Always succeeds."""
    return MessageResponseDto(message="Successfully logged out")
