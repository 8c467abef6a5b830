from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from src.core.clock import Clock, utc_now
from src.core.logger.logger import get_logger
from src.core.service.auth.models.user import UserTier
from src.core.service.usage.cache.usage_store import UsageStore
from src.core.service.usage.models import UsagePeriod, UsageResult
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

# Counters outlive their period by this much before Redis drops them
KEY_GRACE = timedelta(days=1)


def default_tier_limits() -> Dict[UserTier, int]:
    return {
        UserTier.FREE: settings.TIER_LIMIT_FREE,
        UserTier.STANDARD: settings.TIER_LIMIT_STANDARD,
        UserTier.PREMIUM: settings.TIER_LIMIT_PREMIUM,
    }


class UsageTracker:
    """
    Tier-gated usage accounting.

    One counter per user and UTC period. `check_and_reserve` is the only
    mutation and is atomic in the store, so concurrent submissions never push a
    counter past the ceiling the caller's tier had at reservation time.
    """

    def __init__(
        self,
        store: UsageStore,
        clock: Clock = utc_now,
        period: Optional[UsagePeriod] = None,
        limits: Optional[Dict[UserTier, int]] = None,
    ):
        self.store = store
        self.clock = clock
        self.period = period or UsagePeriod(settings.USAGE_PERIOD)
        self.limits = limits or default_tier_limits()

    def limit_for(self, tier: UserTier) -> int:
        return self.limits[UserTier(tier)]

    def period_start(self, now: datetime) -> datetime:
        now = now.astimezone(timezone.utc)
        if self.period == UsagePeriod.DAILY:
            return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
        return datetime(now.year, now.month, 1, tzinfo=timezone.utc)

    def period_key(self, now: datetime) -> str:
        start = self.period_start(now)
        if self.period == UsagePeriod.DAILY:
            return start.strftime("%Y-%m-%d")
        return start.strftime("%Y-%m")

    def next_reset(self, now: datetime) -> datetime:
        """First instant of the period after the one containing `now`"""
        start = self.period_start(now)
        if self.period == UsagePeriod.DAILY:
            return start + timedelta(days=1)
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)

    def _key(self, user_id, period_key: str) -> str:
        return f"usage:{user_id}:{period_key}"

    def _result(self, allowed: bool, used: int, limit: int, now: datetime) -> UsageResult:
        return UsageResult(
            allowed=allowed,
            remaining=max(limit - used, 0),
            limit=limit,
            used=used,
            period=self.period_key(now),
            resets_at=self.next_reset(now),
        )

    async def check_and_reserve(self, user_id, tier: UserTier) -> UsageResult:
        """Atomically take one unit of the current period's allowance if any is left"""
        now = self.clock()
        limit = self.limit_for(tier)
        period_key = self.period_key(now)
        ttl = int((self.next_reset(now) - now + KEY_GRACE).total_seconds())

        allowed, used = await self.store.reserve(self._key(user_id, period_key), limit, ttl)
        if not allowed:
            logger.warning(
                "Usage limit reached",
                extra={"user_id": str(user_id), "tier": UserTier(tier).value, "period": period_key, "limit": limit}
            )
        return self._result(allowed, used, limit, now)

    async def get_usage(self, user_id, tier: UserTier) -> UsageResult:
        """Current period's counter without reserving"""
        now = self.clock()
        limit = self.limit_for(tier)
        used = await self.store.get(self._key(user_id, self.period_key(now)))
        return self._result(used < limit, used, limit, now)

    async def release(self, user_id, period_key: str) -> None:
        """Return a unit taken by `check_and_reserve` for work that was never completed"""
        used = await self.store.release(self._key(user_id, period_key))
        logger.info(
            "Usage reservation released",
            extra={"user_id": str(user_id), "period": period_key, "used": used}
        )
