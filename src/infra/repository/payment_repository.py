"""
Processed payment orders using SQLAlchemy ORM
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infra.models import PaymentEventModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class PaymentRepository:
    """Ledger of gateway orders already applied; an order id is recorded at most once"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_processed(self, order_id: str) -> bool:
        result = await self.session.execute(
            select(PaymentEventModel.id).where(PaymentEventModel.order_id == order_id)
        )
        return result.scalar_one_or_none() is not None

    async def record(self, order_id: str, user_id: UUID, plan_id: str, status: str, at: datetime) -> bool:
        """
        Mark an order as applied.

        Returns:
            False if the order was already recorded
        """
        event = PaymentEventModel(
            order_id=order_id,
            user_id=user_id,
            plan_id=plan_id,
            status=status,
            processed_at=at
        )
        try:
            self.session.add(event)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning("Payment order already recorded", extra={"order_id": order_id})
            return False
        except Exception as e:
            await self.session.rollback()
            logger.error("Failed to record payment order", extra={"order_id": order_id, "error": str(e)})
            raise

        return True
