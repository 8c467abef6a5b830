"""
Payment controller: plan catalogue, order creation and the gateway webhook.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header

from src.api.controller.auth.dto.input_dto import CreateOrderRequestDto
from src.api.controller.auth.dto.error_responses import AUTH_ERROR_RESPONSES, ErrorResponse
from src.api.middleware.authentication.jwt_bearer import get_current_user
from src.core.dependencies import get_entitlement_service
from src.core.exceptions.base import AuthError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.user import User
from src.core.service.auth.utils.crypto import secrets_match
from src.core.service.billing.entitlement_service import EntitlementService
from src.core.service.billing.models import CurrentPlan, PaymentOrder, PaymentWebhookEvent, Plan
from src.infra.config.settings import settings

logger = get_logger(__name__)

router = APIRouter(prefix="/payment", tags=["Payment"])


@router.get("/plans", response_model=List[Plan])
async def list_plans(entitlement_service: EntitlementService = Depends(get_entitlement_service)):
    return entitlement_service.plans()


@router.get("/plan", response_model=CurrentPlan, responses=AUTH_ERROR_RESPONSES)
async def current_plan(
    user: User = Depends(get_current_user),
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    """The caller's effective tier and this period's allowance."""
    return await entitlement_service.current_plan(user)


@router.post(
    "/create-order",
    response_model=PaymentOrder,
    responses={**AUTH_ERROR_RESPONSES, 503: {"model": ErrorResponse, "description": "Payment gateway unavailable"}}
)
async def create_order(
    body: CreateOrderRequestDto,
    user: User = Depends(get_current_user),
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    return await entitlement_service.create_order(user, body.plan_type)


@router.post("/webhook", responses=AUTH_ERROR_RESPONSES)
async def payment_webhook(
    event: PaymentWebhookEvent,
    x_webhook_secret: Optional[str] = Header(None),
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    """
    Gateway callback. A PAID order grants the purchased tier; every other
    status is acknowledged without changing the account.
    """
    if not secrets_match(x_webhook_secret, settings.PAYMENT_WEBHOOK_SECRET):
        logger.warning("Payment webhook rejected", extra={"order_id": event.order_id})
        raise AuthError("Invalid webhook signature")

    await entitlement_service.apply_payment(event)
    return {"received": True}
