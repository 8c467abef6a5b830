"""
Prompt submission repository using SQLAlchemy ORM
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.clock import ensure_utc, utc_now
from src.core.service.auth.models.user import UserTier
from src.core.service.prompt.models import PromptRecord
from src.infra.models import PromptModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class PromptRepository:
    """Repository for prompt submissions. Records are append-only apart from the comment."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: PromptModel) -> PromptRecord:
        return PromptRecord(
            id=model.id,
            user_id=model.user_id,
            comment=model.comment,
            prompt=model.prompt,
            model=model.model,
            tier=UserTier(model.tier),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at)
        )

    async def create(
        self,
        user_id: UUID,
        comment: str,
        prompt: str,
        model: str,
        tier: UserTier,
        created_at: Optional[datetime] = None
    ) -> PromptRecord:
        """
        Persist a prompt submission.

        Args:
            user_id: Owner of the submission
            comment: Free-text comment provided by the user
            prompt: Structured prompt body sent to the model
            model: Model identifier
            tier: Owner's effective tier at submission time

        Returns:
            The stored record
        """
        now = created_at or utc_now()
        record = PromptModel(
            user_id=user_id,
            comment=comment,
            prompt=prompt,
            model=model,
            tier=tier.value,
            created_at=now,
            updated_at=now
        )
        try:
            self.session.add(record)
            await self.session.commit()
            await self.session.refresh(record)
        except Exception as e:
            await self.session.rollback()
            logger.error("Failed to store prompt", extra={"user_id": str(user_id), "error": str(e)})
            raise

        logger.info(
            "Prompt stored",
            extra={"user_id": str(user_id), "prompt_id": str(record.id), "tier": tier.value, "model": model}
        )
        return self._model_to_entity(record)

    async def list_for_user(self, user_id: UUID, limit: int = 20, offset: int = 0) -> List[PromptRecord]:
        """Newest first"""
        result = await self.session.execute(
            select(PromptModel)
            .where(PromptModel.user_id == user_id)
            .order_by(PromptModel.created_at.desc(), PromptModel.id)
            .offset(offset)
            .limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]

    async def count_for_user(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(PromptModel.id)).where(PromptModel.user_id == user_id)
        )
        return int(result.scalar_one())

    async def get_for_user(self, user_id: UUID, prompt_id) -> Optional[PromptRecord]:
        pid = _as_uuid(prompt_id)
        if pid is None:
            return None
        result = await self.session.execute(
            select(PromptModel).where(PromptModel.id == pid, PromptModel.user_id == user_id)
        )
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def update_comment(self, user_id: UUID, prompt_id, comment: str) -> Optional[PromptRecord]:
        """Change the comment of a prompt owned by `user_id`; None if there is no such prompt"""
        pid = _as_uuid(prompt_id)
        if pid is None:
            return None
        try:
            result = await self.session.execute(
                update(PromptModel)
                .where(PromptModel.id == pid, PromptModel.user_id == user_id)
                .values(comment=comment, updated_at=utc_now())
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("Failed to update prompt comment", extra={"prompt_id": str(pid), "error": str(e)})
            raise

        if result.rowcount == 0:
            return None
        return await self.get_for_user(user_id, pid)

    async def count(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count(PromptModel.id))
        if since is not None:
            stmt = stmt.where(PromptModel.created_at >= since)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
