"""
Standardized error response DTOs for the API.
Mirror the envelope built by ErrorResponseBuilder; used for OpenAPI docs and
by middleware that answers before routing.
"""

from pydantic import BaseModel, Field, field_serializer
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"

    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    IP_BLOCKED = "IP_BLOCKED"

    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: ErrorCode = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp")
    request_id: Optional[str] = Field(None, description="Request ID for tracking")

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """Serialize datetime to ISO format with Z suffix."""
        return timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = Field(False, description="Always false for errors")
    error: ErrorDetail = Field(..., description="Error details")


class RateLimitErrorResponse(ErrorResponse):
    """Rate limit error response with retry information."""

    retry_after: int = Field(..., description="Seconds to wait before retry")
    limit: int = Field(..., description="Rate limit threshold")
    remaining: int = Field(0, description="remaining requests")
    reset_time: datetime = Field(..., description="When the rate limit resets")

    @field_serializer('reset_time')
    def serialize_reset_time(self, reset_time: datetime) -> str:
        """Serialize datetime to ISO format with Z suffix."""
        return reset_time.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# OpenAPI `responses=` fragments shared by routers
AUTH_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    401: {"model": ErrorResponse, "description": "Authentication failed"},
    500: {"model": ErrorResponse, "description": "Internal error"},
}
