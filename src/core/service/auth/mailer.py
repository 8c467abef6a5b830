from abc import ABC, abstractmethod

from src.core.logger.logger import get_logger
from src.core.service.auth.models.user import User

logger = get_logger(__name__)


class PasswordResetMailer(ABC):
    """Delivers password reset links. Delivery itself is outside this service."""

    @abstractmethod
    async def send_reset_link(self, user: User, reset_link: str) -> None:
        ...


class LoggingPasswordResetMailer(PasswordResetMailer):
    """Records that a reset mail would be sent; the link is never logged"""

    async def send_reset_link(self, user: User, reset_link: str) -> None:
        logger.info("Password reset mail dispatched", extra={"user_id": str(user.id)})
