import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import DecodeError, InvalidSignatureError, InvalidTokenError

from src.core.clock import Clock, utc_now
from src.core.exceptions.base import AuthError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.token import (
    IssuedToken, TokenErrorKind, TokenPair, TokenPayload, TokenType
)
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

_ERROR_MESSAGES = {
    TokenErrorKind.EXPIRED: "Token has expired",
    TokenErrorKind.INVALID_SIGNATURE: "Invalid token signature",
    TokenErrorKind.MALFORMED: "Malformed token",
    TokenErrorKind.WRONG_TYPE: "Invalid token type",
}


class TokenError(AuthError):
    """Token verification failure carrying its kind"""

    def __init__(self, kind: TokenErrorKind):
        self.kind = kind
        super().__init__(message=_ERROR_MESSAGES[kind], details={"reason": kind.value})


class TokenService:
    """
    Stateless issuing and verification of user access/refresh tokens.

    Nothing is persisted: validity is a function of signature, type and expiry
    against the injected clock. Refreshing only ever yields a new access token;
    the refresh token keeps its original expiry.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_ttl: Optional[timedelta] = None,
        refresh_ttl: Optional[timedelta] = None,
        clock: Clock = utc_now,
    ):
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.access_ttl = access_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.clock = clock

        if self.access_ttl >= self.refresh_ttl:
            raise ValueError("Access token lifetime must be shorter than refresh token lifetime")

    def _create_token(self, user_id: str, token_type: TokenType) -> IssuedToken:
        """Create a signed token of the given type"""
        issued_at = self.clock()
        ttl = self.access_ttl if token_type == TokenType.ACCESS else self.refresh_ttl
        expires_at = issued_at + ttl

        claims = {
            "sub": str(user_id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "type": token_type.value,
            "jti": str(uuid.uuid4()),
        }

        encoded_jwt = jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
        return IssuedToken(
            token=encoded_jwt,
            expires_at=expires_at,
            expires_in=int(ttl.total_seconds())
        )

    def issue_access_token(self, user_id: str) -> IssuedToken:
        return self._create_token(user_id, TokenType.ACCESS)

    def issue_refresh_token(self, user_id: str) -> IssuedToken:
        return self._create_token(user_id, TokenType.REFRESH)

    def issue_token_pair(self, user_id: str) -> TokenPair:
        """Generate access and refresh tokens for a fresh login"""
        access = self.issue_access_token(user_id)
        refresh = self.issue_refresh_token(user_id)
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            expires_in=access.expires_in,
            refresh_expires_in=refresh.expires_in
        )

    def verify(self, token: str, expected_type: TokenType = TokenType.ACCESS) -> TokenPayload:
        """
        Verify a token and return its payload.
        Raises TokenError(EXPIRED | INVALID_SIGNATURE | MALFORMED | WRONG_TYPE).
        """
        if not token:
            raise TokenError(TokenErrorKind.MALFORMED)

        try:
            # Expiry is checked below against the injected clock
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "iat", "exp", "type", "jti"],
                }
            )
        except InvalidSignatureError:
            logger.warning("Token signature mismatch", extra={"token_type": expected_type.value})
            raise TokenError(TokenErrorKind.INVALID_SIGNATURE)
        except (DecodeError, InvalidTokenError) as e:
            logger.warning("Malformed token", extra={"token_type": expected_type.value, "error": str(e)})
            raise TokenError(TokenErrorKind.MALFORMED)

        try:
            payload = TokenPayload(
                user_id=claims["sub"],
                exp=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
                iat=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
                type=claims["type"],
                jti=claims["jti"]
            )
        except (TypeError, ValueError):
            raise TokenError(TokenErrorKind.MALFORMED)

        if payload.type != expected_type:
            logger.warning(
                "Token type mismatch",
                extra={
                    "expected_type": expected_type.value,
                    "actual_type": payload.type.value,
                    "user_id": payload.user_id
                }
            )
            raise TokenError(TokenErrorKind.WRONG_TYPE)

        if self.clock() >= payload.exp:
            logger.info("Token expired", extra={"token_type": expected_type.value, "user_id": payload.user_id})
            raise TokenError(TokenErrorKind.EXPIRED)

        return payload

    def refresh(self, refresh_token: str) -> IssuedToken:
        """Exchange a valid refresh token for a new access token"""
        payload = self.verify(refresh_token, TokenType.REFRESH)
        access = self.issue_access_token(payload.user_id)

        logger.info("Access token refreshed", extra={"user_id": payload.user_id})
        return access
