"""
Plan catalogue and payment models
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.core.service.auth.models.user import UserTier


class Plan(BaseModel):
    id: str
    name: str
    tier: UserTier
    price: int
    currency: str = "INR"
    duration_days: int = 30
    features: List[str] = Field(default_factory=list)


PLANS: Dict[str, Plan] = {
    "standard": Plan(
        id="standard",
        name="Standard",
        tier=UserTier.STANDARD,
        price=299,
        features=[
            "Higher monthly prompt allowance",
            "Valid for 1 month",
            "Advanced prompt templates",
            "Priority support",
        ],
    ),
    "premium": Plan(
        id="premium",
        name="Premium",
        tier=UserTier.PREMIUM,
        price=999,
        features=[
            "Largest monthly prompt allowance",
            "Valid for 1 month",
            "All Standard features",
            "Custom prompt templates",
            "24/7 priority support",
        ],
    ),
}


class PaymentOrder(BaseModel):
    """Order as created at the payment gateway"""
    order_id: str
    plan_id: str
    amount: int
    currency: str
    payment_url: Optional[str] = None
    gateway_response: Dict[str, Any] = Field(default_factory=dict)


class PaymentWebhookEvent(BaseModel):
    """Outcome notification posted by the payment gateway"""
    order_id: str
    order_status: str
    order_amount: Optional[float] = None
    order_currency: Optional[str] = None
    order_meta: Dict[str, Any] = Field(default_factory=dict)


class CurrentPlan(BaseModel):
    tier: UserTier
    is_active: bool
    expires_at: Optional[datetime] = None
    limit: int
    used: int
    remaining: int
    period: str
    resets_at: datetime
