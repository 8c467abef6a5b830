"""
Centralized error handling for the API.
Provides consistent error responses, logging, and HTTP status codes across all services.
"""

import traceback
from typing import Dict, Any, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from datetime import datetime, timezone

from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class ServiceErrorCode:
    """Standard error codes for services"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"

    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    IP_BLOCKED = "IP_BLOCKED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ServiceError(Exception):
    """
    Standardized service error for internal use.
    Gets converted to proper HTTP response by error handler.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.context = context or {}
        super().__init__(message)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", "unknown")


class ErrorResponseBuilder:
    """Builds standardized error responses"""

    @staticmethod
    def build_error_response(
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build standardized error response"""

        response = {
            "success": False,
            "error": {
                "code": error_code,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            }
        }

        if details:
            response["error"]["details"] = details

        if request_id:
            response["error"]["request_id"] = request_id

        return response

    @staticmethod
    def build_validation_error_response(
        validation_errors: list,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build validation error response"""

        return ErrorResponseBuilder.build_error_response(
            error_code=ServiceErrorCode.VALIDATION_ERROR,
            message="Validation failed",
            details={
                "validation_errors": validation_errors
            },
            request_id=request_id
        )


class GlobalErrorHandler:
    """Global error handler for all application errors"""

    @staticmethod
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        """Handle ServiceError exceptions"""

        request_id = _request_id(request)
        log_extra = {
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "context": exc.context,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method
        }

        if exc.status_code >= 500:
            logger.error(f"Service error: {exc.code}", extra=log_extra)
        else:
            logger.warning(f"Service error: {exc.code}", extra=log_extra)

        response = ErrorResponseBuilder.build_error_response(
            error_code=exc.code,
            message=exc.message,
            details=exc.details,
            request_id=request_id
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=response,
            headers=exc.context.get("headers")
        )

    @staticmethod
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTPException with standardized format"""

        request_id = _request_id(request)

        # Determine error code based on status
        if exc.status_code == 401:
            error_code = ServiceErrorCode.AUTH_ERROR
        elif exc.status_code == 404:
            error_code = ServiceErrorCode.NOT_FOUND
        elif exc.status_code == 405:
            error_code = ServiceErrorCode.METHOD_NOT_ALLOWED
        elif exc.status_code in (400, 422):
            error_code = ServiceErrorCode.VALIDATION_ERROR
        elif exc.status_code == 429:
            error_code = ServiceErrorCode.RATE_LIMIT_EXCEEDED
        else:
            error_code = ServiceErrorCode.INTERNAL

        logger.warning(
            f"HTTP exception: {exc.status_code}",
            extra={
                "status_code": exc.status_code,
                "detail": exc.detail,
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method
            }
        )

        response = ErrorResponseBuilder.build_error_response(
            error_code=error_code,
            message=str(exc.detail),
            request_id=request_id
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=response,
            headers=getattr(exc, "headers", None)
        )

    @staticmethod
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors"""

        request_id = _request_id(request)

        validation_errors = []
        for error in exc.errors():
            field = '.'.join(str(loc) for loc in error['loc'] if loc != "body")
            validation_errors.append({
                'field': field,
                'message': error['msg']
            })

        logger.warning(
            f"Validation error: {len(validation_errors)} errors",
            extra={
                "validation_errors": validation_errors,
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method
            }
        )

        response = ErrorResponseBuilder.build_validation_error_response(
            validation_errors=validation_errors,
            request_id=request_id
        )

        return JSONResponse(
            status_code=400,
            content=response
        )

    @staticmethod
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions"""

        request_id = _request_id(request)

        # Full traceback goes to the log only, never to the caller
        logger.error(
            f"Unexpected error: {type(exc).__name__}",
            extra={
                "error_type": type(exc).__name__,
                "error_message": str(exc),
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "traceback": traceback.format_exc()
            }
        )

        response = ErrorResponseBuilder.build_error_response(
            error_code=ServiceErrorCode.INTERNAL,
            message="An unexpected error occurred. Please try again.",
            request_id=request_id
        )

        return JSONResponse(
            status_code=500,
            content=response
        )
