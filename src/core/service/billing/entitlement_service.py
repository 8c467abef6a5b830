from datetime import timedelta
from typing import List, Optional

from src.core.clock import Clock, utc_now
from src.core.exceptions.base import NotFoundError, ValidationError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.user import User, UserTier
from src.core.service.billing.models import PLANS, CurrentPlan, PaymentOrder, PaymentWebhookEvent, Plan
from src.core.service.billing.payment_gateway import PaymentGateway
from src.core.service.usage.usage_tracker import UsageTracker
from src.infra.config.settings import get_settings
from src.infra.repository.payment_repository import PaymentRepository
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

PAID_STATUS = "PAID"


class EntitlementService:
    """Plan catalogue, order creation and tier changes driven by payment outcomes"""

    def __init__(
        self,
        user_repository: UserRepository,
        usage_tracker: UsageTracker,
        payment_gateway: PaymentGateway,
        payment_repository: PaymentRepository,
        clock: Clock = utc_now,
    ):
        self.user_repository = user_repository
        self.payment_repository = payment_repository
        self.usage_tracker = usage_tracker
        self.payment_gateway = payment_gateway
        self.clock = clock

    def plans(self) -> List[Plan]:
        return list(PLANS.values())

    def get_plan(self, plan_id: str) -> Plan:
        plan = PLANS.get(plan_id)
        if plan is None:
            raise ValidationError("Invalid plan type", details={"plan_type": plan_id, "allowed": sorted(PLANS)})
        return plan

    async def current_plan(self, user: User) -> CurrentPlan:
        now = self.clock()
        tier = user.effective_tier(now)
        usage = await self.usage_tracker.get_usage(user.id, tier)
        return CurrentPlan(
            tier=tier,
            is_active=tier != UserTier.FREE,
            expires_at=user.tier_expires_at if tier != UserTier.FREE else None,
            limit=usage.limit,
            used=usage.used,
            remaining=usage.remaining,
            period=usage.period,
            resets_at=usage.resets_at,
        )

    async def create_order(self, user: User, plan_id: str) -> PaymentOrder:
        """
        Create a gateway order for a plan.

        Raises:
            ValidationError: unknown plan, or the user already holds an active paid plan
            ServiceUnavailableError: gateway not configured or failing
        """
        plan = self.get_plan(plan_id)
        now = self.clock()

        if user.effective_tier(now) != UserTier.FREE:
            raise ValidationError(
                "You already have an active plan",
                details={"tier": user.tier.value, "expires_at": user.tier_expires_at.isoformat() if user.tier_expires_at else None}
            )

        order_id = f"order_{user.id.hex}_{int(now.timestamp())}"
        response = await self.payment_gateway.create_order({
            "order_id": order_id,
            "order_amount": plan.price,
            "order_currency": plan.currency,
            "customer_details": {
                "customer_id": str(user.id),
                "customer_name": f"{user.first_name} {user.last_name}",
                "customer_email": user.email,
            },
            "order_meta": {"user_id": str(user.id), "plan_type": plan.id},
            "order_note": f"{plan.name} Plan - {plan.duration_days} days",
        })

        logger.info("Payment order created", extra={"user_id": str(user.id), "order_id": order_id, "plan": plan.id})
        return PaymentOrder(
            order_id=order_id,
            plan_id=plan.id,
            amount=plan.price,
            currency=plan.currency,
            payment_url=response.get("payment_link") or response.get("payment_url"),
            gateway_response=response,
        )

    async def apply_payment(self, event: PaymentWebhookEvent) -> Optional[User]:
        """
        Grant the purchased tier for a PAID order; other outcomes change nothing.

        Redelivery of an order that was already applied is acknowledged and
        leaves the account as it is.
        """
        if event.order_status.upper() != PAID_STATUS:
            logger.info(
                "Payment webhook acknowledged without entitlement change",
                extra={"order_id": event.order_id, "order_status": event.order_status}
            )
            return None

        user_id = event.order_meta.get("user_id")
        plan = self.get_plan(event.order_meta.get("plan_type", ""))

        user = await self.user_repository.get_by_id(user_id)
        if user is None:
            logger.warning("Payment webhook for unknown user", extra={"order_id": event.order_id})
            raise NotFoundError("User not found")

        if await self.payment_repository.is_processed(event.order_id):
            logger.info(
                "Duplicate payment webhook ignored",
                extra={"user_id": str(user.id), "order_id": event.order_id}
            )
            return user

        now = self.clock()
        expires_at = now + timedelta(days=settings.PLAN_DURATION_DAYS)
        updated = await self.user_repository.update_tier(user.id, plan.tier, expires_at)
        await self.payment_repository.record(event.order_id, user.id, plan.id, PAID_STATUS, now)
        logger.info(
            "Tier granted from payment",
            extra={"user_id": str(user.id), "order_id": event.order_id, "tier": plan.tier.value}
        )
        return updated

    async def set_tier(self, user_id: str, tier: UserTier, duration_days: Optional[int] = None) -> User:
        """Admin override; free never expires, paid tiers expire after `duration_days` if given"""
        expires_at = None
        if tier != UserTier.FREE and duration_days:
            expires_at = self.clock() + timedelta(days=duration_days)

        user = await self.user_repository.update_tier(user_id, tier, expires_at)
        if user is None:
            raise NotFoundError("User not found")
        return user
