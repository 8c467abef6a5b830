from typing import Any, Dict, Optional
from fastapi import status

from src.core.exceptions.handler import ServiceError, ServiceErrorCode


class ValidationError(ServiceError):
    """Malformed or policy-violating input the caller can correct."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.VALIDATION_ERROR,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class AuthError(ServiceError):
    """
    Bad credentials, or an expired/invalid token or admin session.
    Messages never reveal whether the account exists.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=ServiceErrorCode.AUTH_ERROR,
            message=message,
            status_code=status_code,
            details=details,
        )


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            code=ServiceErrorCode.NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ConflictError(ServiceError):
    def __init__(self, message: str = "Resource already exists"):
        super().__init__(
            code=ServiceErrorCode.CONFLICT,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
        )


class QuotaExceededError(ServiceError):
    """Tier usage ceiling reached for the current period."""

    def __init__(self, message: str = "Usage limit reached for your plan", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.QUOTA_EXCEEDED,
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
        )


class InternalError(ServiceError):
    def __init__(self, message: str = "Internal error", context: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.INTERNAL,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            context=context,
        )


class ServiceUnavailableError(ServiceError):
    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(
            code=ServiceErrorCode.SERVICE_UNAVAILABLE,
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
