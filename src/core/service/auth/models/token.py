from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenErrorKind(str, Enum):
    EXPIRED = "EXPIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    MALFORMED = "MALFORMED"
    WRONG_TYPE = "WRONG_TYPE"


class TokenPayload(BaseModel):
    """Decoded JWT claims"""
    user_id: str = Field(..., description="Subject (user id)")
    exp: datetime = Field(..., description="Token expiration timestamp")
    iat: datetime = Field(..., description="Token issued at timestamp")
    type: TokenType = Field(..., description="Token type (access or refresh)")
    jti: str = Field(..., description="Unique token identifier")


class IssuedToken(BaseModel):
    token: str
    expires_at: datetime
    expires_in: int  # seconds


class TokenPair(BaseModel):
    """Access + refresh tokens issued at login"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    refresh_expires_in: int
