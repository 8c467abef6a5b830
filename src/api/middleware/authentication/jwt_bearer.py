from typing import Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPBearer

from src.core.dependencies import get_account_service, get_admin_session_service, get_token_service
from src.core.exceptions.base import AuthError
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.admin_session_service import AdminSessionService
from src.core.service.auth.jwt_service import TokenService
from src.core.service.auth.models.principal import AdminPrincipal, UserPrincipal
from src.core.service.auth.models.token import TokenType
from src.core.service.auth.models.user import User
from src.infra.config.settings import settings
from src.core.logger.logger import logger


class CustomHTTPBearer(HTTPBearer):
    """Extracts the bearer credential; every failure surfaces as AUTH_ERROR"""

    async def __call__(self, request: Request) -> str:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise AuthError("Not authenticated")

        parts = auth_header.split()
        if len(parts) != 2:
            raise AuthError("Invalid authorization header")

        scheme, credentials = parts
        if scheme.lower() != "bearer":
            raise AuthError("Invalid authentication scheme")

        return credentials


bearer_scheme = CustomHTTPBearer(auto_error=False)
admin_session_header = APIKeyHeader(name=settings.ADMIN_SESSION_HEADER, auto_error=False)


async def get_current_principal(
    request: Request,
    token: str = Depends(bearer_scheme),
    token_service: TokenService = Depends(get_token_service),
    account_service: AccountService = Depends(get_account_service)
) -> UserPrincipal:
    """Verified access token -> principal for an active user"""
    payload = token_service.verify(token, expected_type=TokenType.ACCESS)
    user = await account_service.get_active_user(payload.user_id)
    request.state.user_id = str(user.id)
    return UserPrincipal(
        subject_id=str(user.id),
        role=user.role,
        expires_at=payload.exp,
        user=user,
        token_id=payload.jti,
    )


async def get_current_user(principal: UserPrincipal = Depends(get_current_principal)) -> User:
    return principal.user


async def get_admin_session_id(session_id: Optional[str] = Depends(admin_session_header)) -> Optional[str]:
    return session_id.strip() if session_id else None


async def require_admin_session(
    request: Request,
    session_id: Optional[str] = Depends(get_admin_session_id),
    admin_session_service: AdminSessionService = Depends(get_admin_session_service)
) -> AdminPrincipal:
    """Gate for admin console routes; records activity on the session"""
    try:
        principal = await admin_session_service.authorize(session_id)
    except AuthError:
        logger.warning("Admin route rejected", extra={"path": request.url.path})
        raise
    request.state.admin_id = principal.subject_id
    return principal
