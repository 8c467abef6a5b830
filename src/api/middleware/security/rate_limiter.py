from datetime import datetime, timedelta, timezone
from typing import Dict, Tuple, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.infra.config.settings import get_settings
from src.core.logger.logger import get_logger
from src.api.controller.auth.dto.error_responses import RateLimitErrorResponse, ErrorDetail, ErrorCode
from src.api.utils.client import get_client_ip

logger = get_logger(__name__)
settings = get_settings()

# Endpoints whose 401/403 answers count towards blocking the caller's IP
CREDENTIAL_ENDPOINTS = ("/api/auth/login", "/api/admin/admin-login", "/api/auth/reset-password")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EnhancedRateLimiter:
    """Per-IP rate limiter with endpoint-specific limits and temporary IP blocks."""

    def __init__(self):
        # Endpoint-specific request tracking: endpoint -> IP -> timestamps
        self.endpoint_requests: Dict[str, Dict[str, list]] = {}
        self.blocked_ips: Dict[str, datetime] = {}  # IP -> Unblock time
        self.failed_attempts: Dict[str, Tuple[int, datetime]] = {}  # IP -> (count, first_attempt)

        # Endpoint-specific rate limits (requests per minute)
        self.endpoint_limits = {
            '/api/auth/login': settings.RATE_LIMIT_AUTH_LOGIN,
            '/api/auth/register': settings.RATE_LIMIT_AUTH_REGISTER,
            '/api/auth/forgot-password': settings.RATE_LIMIT_AUTH_FORGOT_PASSWORD,
            '/api/auth/reset-password': settings.RATE_LIMIT_AUTH_FORGOT_PASSWORD,
            '/api/refresh': settings.RATE_LIMIT_AUTH_REFRESH,
            '/api/admin/admin-login': settings.RATE_LIMIT_ADMIN_LOGIN,
            'default': settings.RATE_LIMIT_DEFAULT
        }

    def is_rate_limited(self, ip: str, endpoint: str) -> Tuple[bool, int, int, Optional[datetime]]:
        """
        Check if IP is rate limited for specific endpoint.
        Returns: (is_limited, current_count, limit, reset_time)
        """
        now = _now()

        # Check if IP is blocked
        if ip in self.blocked_ips:
            if now < self.blocked_ips[ip]:
                return True, 0, 0, self.blocked_ips[ip]
            else:
                del self.blocked_ips[ip]

        limit = self.endpoint_limits.get(endpoint, self.endpoint_limits['default'])

        if endpoint not in self.endpoint_requests:
            self.endpoint_requests[endpoint] = {}

        # Clean old requests (older than 1 minute)
        if ip in self.endpoint_requests[endpoint]:
            self.endpoint_requests[endpoint][ip] = [
                ts for ts in self.endpoint_requests[endpoint][ip]
                if now - ts < timedelta(minutes=1)
            ]

        current_count = len(self.endpoint_requests[endpoint].get(ip, []))

        # Calculate reset time (next minute boundary)
        reset_time = now.replace(second=0, microsecond=0) + timedelta(minutes=1)

        return current_count >= limit, current_count, limit, reset_time

    def add_request(self, ip: str, endpoint: str):
        """Add request to endpoint-specific tracking."""
        self.endpoint_requests.setdefault(endpoint, {}).setdefault(ip, []).append(_now())

    def record_failed_attempt(self, ip: str):
        """Record failed authentication attempt and block IP if suspicious."""
        now = _now()

        if ip not in self.failed_attempts:
            self.failed_attempts[ip] = (1, now)
        else:
            count, first_attempt = self.failed_attempts[ip]
            if now - first_attempt < timedelta(minutes=5):
                if count + 1 >= settings.SUSPICIOUS_IP_THRESHOLD:
                    self.block_ip(ip)
                    del self.failed_attempts[ip]
                else:
                    self.failed_attempts[ip] = (count + 1, first_attempt)
            else:
                # Reset counter after 5 minutes
                self.failed_attempts[ip] = (1, now)

    def block_ip(self, ip: str):
        """Block IP for suspicious activity."""
        self.blocked_ips[ip] = _now() + timedelta(minutes=settings.IP_BLOCK_DURATION)
        logger.warning(
            "IP blocked due to suspicious activity",
            extra={"ip_address": ip, "block_minutes": settings.IP_BLOCK_DURATION}
        )


class EnhancedRateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with endpoint-specific limits and standard error envelopes."""

    def __init__(self, app, enabled: Optional[bool] = None):
        super().__init__(app)
        self.enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled
        self.rate_limiter = EnhancedRateLimiter()

    def _get_client_ip(self, request: Request) -> str:
        return get_client_ip(request) or "unknown"

    def _create_rate_limit_response(
        self, request: Request, current_count: int, limit: int, reset_time: datetime, retry_after: int
    ) -> Response:
        """Create standardized rate limit error response."""
        error_response = RateLimitErrorResponse(
            error=ErrorDetail(
                code=ErrorCode.RATE_LIMIT_EXCEEDED,
                message=f"Rate limit exceeded. Maximum {limit} requests per minute.",
                details={"current_count": current_count, "limit": limit, "retry_after": retry_after},
                request_id=getattr(request.state, "request_id", None)
            ),
            retry_after=retry_after,
            limit=limit,
            remaining=max(0, limit - current_count),
            reset_time=reset_time
        )

        response = Response(
            content=error_response.model_dump_json(),
            media_type="application/json",
            status_code=429
        )
        response.headers["Retry-After"] = str(retry_after)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current_count))
        response.headers["X-RateLimit-Reset"] = str(int(reset_time.timestamp()))

        return response

    def _create_ip_blocked_response(self, request: Request, reset_time: datetime) -> Response:
        """Create IP blocked error response."""
        retry_after = max(0, int((reset_time - _now()).total_seconds()))

        error_response = RateLimitErrorResponse(
            error=ErrorDetail(
                code=ErrorCode.IP_BLOCKED,
                message="IP temporarily blocked due to suspicious activity",
                details={"retry_after": retry_after},
                request_id=getattr(request.state, "request_id", None)
            ),
            retry_after=retry_after,
            limit=0,
            remaining=0,
            reset_time=reset_time
        )

        response = Response(
            content=error_response.model_dump_json(),
            media_type="application/json",
            status_code=403
        )
        response.headers["Retry-After"] = str(retry_after)

        return response

    async def dispatch(self, request: Request, call_next) -> Response:
        # Skip rate limiting for CORS preflight requests and health checks
        if not self.enabled or request.method == "OPTIONS" or request.url.path in ["/health", "/docs", "/redoc"]:
            return await call_next(request)

        ip = self._get_client_ip(request)
        endpoint = request.url.path

        is_limited, current_count, limit, reset_time = self.rate_limiter.is_rate_limited(ip, endpoint)

        if is_limited:
            if ip in self.rate_limiter.blocked_ips:
                logger.warning("Blocked request", extra={"ip_address": ip, "path": endpoint})
                return self._create_ip_blocked_response(request, reset_time)
            else:
                retry_after = max(1, int((reset_time - _now()).total_seconds()))
                logger.warning(
                    "Rate limit exceeded",
                    extra={"ip_address": ip, "path": endpoint, "count": current_count, "limit": limit}
                )
                return self._create_rate_limit_response(request, current_count, limit, reset_time, retry_after)

        self.rate_limiter.add_request(ip, endpoint)

        response = await call_next(request)

        if response.status_code in [401, 403] and endpoint in CREDENTIAL_ENDPOINTS:
            self.rate_limiter.record_failed_attempt(ip)

        if response.status_code < 400:
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current_count - 1))
            response.headers["X-RateLimit-Reset"] = str(int(reset_time.timestamp()))

        return response
