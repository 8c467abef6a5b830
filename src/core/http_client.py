"""
Outbound HTTP client settings.

Only the payment gateway calls out today. Clients are short-lived and never
shared between requests; there is no retry layer, a failed call surfaces to
the caller as-is.
"""

import httpx
from typing import Optional, Dict, Any

from src.infra.config.settings import get_settings

settings = get_settings()

# Upper bound for the connect phase, in seconds
CONNECT_TIMEOUT_CAP = 5.0


class HTTPClientConfig:
    """Per-integration timeouts, pool limits and headers"""

    @classmethod
    def get_timeout(cls, service: str) -> httpx.Timeout:
        seconds = settings.HTTP_PAYMENT_TIMEOUT if service == "payment" else settings.HTTP_DEFAULT_TIMEOUT
        return httpx.Timeout(seconds, connect=min(seconds, CONNECT_TIMEOUT_CAP))

    @classmethod
    def get_base_headers(cls) -> Dict[str, str]:
        return {
            "User-Agent": f"JSON4AI-Backend/{settings.APP_VERSION}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    @classmethod
    def create_client_config(cls, service: str = "default", timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Keyword arguments for an httpx.AsyncClient talking to `service`.

        Args:
            service: Integration name, selects the timeout
            timeout: Total timeout override in seconds
        """
        return {
            "timeout": httpx.Timeout(timeout) if timeout else cls.get_timeout(service),
            "limits": httpx.Limits(
                max_connections=settings.HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE_CONNECTIONS
            ),
            "headers": cls.get_base_headers(),
            "follow_redirects": False,
        }


def create_temp_client(service: str = "default", **kwargs) -> httpx.AsyncClient:
    """
    Client for a single exchange; use it as `async with` so it is closed.

    `headers` passed here are merged over the base headers rather than
    replacing them.
    """
    config = HTTPClientConfig.create_client_config(service)
    extra_headers = kwargs.pop("headers", None)
    if extra_headers:
        config["headers"] = {**config["headers"], **extra_headers}
    config.update(kwargs)
    return httpx.AsyncClient(**config)
