import json
from typing import List, Optional, Tuple

from src.core.clock import Clock, utc_now
from src.core.exceptions.base import NotFoundError, QuotaExceededError
from src.core.logger.logger import get_logger
from src.core.service.auth.models.user import User
from src.core.service.prompt.models import DEFAULT_MODEL, PromptRecord
from src.core.service.usage.models import UsageResult
from src.core.service.usage.usage_tracker import UsageTracker
from src.infra.repository.prompt_repository import PromptRepository

logger = get_logger(__name__)


def build_structured_prompt(comment: str) -> str:
    return json.dumps({"user_query": comment, "structured": True})


class PromptService:
    """Quota-gated prompt submissions and their history"""

    def __init__(
        self,
        prompt_repository: PromptRepository,
        usage_tracker: UsageTracker,
        clock: Clock = utc_now,
        metrics=None,
    ):
        self.prompt_repository = prompt_repository
        self.usage_tracker = usage_tracker
        self.clock = clock
        self.metrics = metrics

    async def submit(self, user: User, comment: str, model: Optional[str] = None) -> Tuple[PromptRecord, UsageResult]:
        """
        Reserve a usage slot and store the submission.

        The record keeps the tier the user had at submission; later tier
        changes never rewrite it.

        Raises:
            QuotaExceededError: the tier's allowance for this period is used up
        """
        now = self.clock()
        tier = user.effective_tier(now)

        usage = await self.usage_tracker.check_and_reserve(user.id, tier)
        if not usage.allowed:
            if self.metrics is not None:
                self.metrics.record_quota_rejection(tier.value)
            raise QuotaExceededError(
                details={
                    "tier": tier.value,
                    "limit": usage.limit,
                    "used": usage.used,
                    "period": usage.period,
                    "resets_at": usage.resets_at.isoformat(),
                }
            )

        try:
            record = await self.prompt_repository.create(
                user_id=user.id,
                comment=comment,
                prompt=build_structured_prompt(comment),
                model=model or DEFAULT_MODEL,
                tier=tier,
                created_at=now,
            )
        except Exception:
            # Nothing was stored, so the slot goes back
            await self.usage_tracker.release(user.id, usage.period)
            raise
        return record, usage

    async def history(self, user: User, limit: int = 20, offset: int = 0) -> Tuple[List[PromptRecord], int]:
        records = await self.prompt_repository.list_for_user(user.id, limit=limit, offset=offset)
        total = await self.prompt_repository.count_for_user(user.id)
        return records, total

    async def update_comment(self, user: User, prompt_id: str, comment: str) -> PromptRecord:
        record = await self.prompt_repository.update_comment(user.id, prompt_id, comment)
        if record is None:
            raise NotFoundError("Prompt not found")
        return record

    async def usage(self, user: User) -> UsageResult:
        return await self.usage_tracker.get_usage(user.id, user.effective_tier(self.clock()))
