"""
Payment gateway client. Order creation is delegated to an external service.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from src.core.exceptions.base import ServiceUnavailableError
from src.core.http_client import create_temp_client
from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class PaymentGateway(ABC):
    @abstractmethod
    async def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        """Create an order at the gateway and return its response body"""


class HttpPaymentGateway(PaymentGateway):
    """Posts orders to PAYMENT_GATEWAY_URL"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.PAYMENT_GATEWAY_URL
        self.token = token if token is not None else settings.PAYMENT_GATEWAY_TOKEN
        self.transport = transport

    async def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        if not self.base_url:
            raise ServiceUnavailableError("Payment gateway is not configured")

        client_kwargs: Dict[str, Any] = {}
        if self.token:
            client_kwargs["headers"] = {"Authorization": f"Bearer {self.token}"}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        url = f"{self.base_url.rstrip('/')}/orders"
        async with create_temp_client("payment", **client_kwargs) as client:
            try:
                start_time = time.monotonic()
                response = await client.post(url, json=order)
                duration = time.monotonic() - start_time

                logger.info(
                    "Payment gateway response received",
                    extra={
                        "order_id": order.get("order_id"),
                        "status_code": response.status_code,
                        "duration_seconds": round(duration, 3)
                    }
                )

                if response.status_code >= 400:
                    logger.error(
                        "Payment gateway returned error status",
                        extra={"status_code": response.status_code, "response_text": response.text[:500]}
                    )
                    raise ServiceUnavailableError("Payment gateway rejected the order")

                return response.json()

            except httpx.TimeoutException:
                logger.error("Payment gateway timeout", extra={"order_id": order.get("order_id")})
                raise ServiceUnavailableError("Payment gateway timed out")

            except httpx.RequestError as e:
                logger.error(
                    "Payment gateway connection error",
                    extra={"order_id": order.get("order_id"), "error": str(e)}
                )
                raise ServiceUnavailableError("Payment gateway is unreachable")

            except ValueError as e:
                logger.error("Payment gateway returned invalid JSON", extra={"error": str(e)})
                raise ServiceUnavailableError("Payment gateway returned an invalid response")
