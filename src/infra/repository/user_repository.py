"""
User repository (account directory) using SQLAlchemy ORM
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from src.core.clock import ensure_utc, utc_now
from src.core.exceptions.base import ConflictError
from src.core.service.auth.models.user import User, UserRole, UserTier
from src.infra.models import UserModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "created_at": UserModel.created_at,
    "email": UserModel.email,
    "first_name": UserModel.first_name,
    "last_name": UserModel.last_name,
}


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UserRepository:
    """Repository for user records using SQLAlchemy ORM"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: UserModel) -> User:
        """Convert SQLAlchemy model to Pydantic entity"""
        return User(
            id=model.id,
            first_name=model.first_name,
            last_name=model.last_name,
            email=model.email,
            password_hash=model.password_hash,
            tier=UserTier(model.tier),
            tier_expires_at=ensure_utc(model.tier_expires_at) if model.tier_expires_at else None,
            role=UserRole(model.role),
            is_active=model.is_active,
            last_login_at=ensure_utc(model.last_login_at) if model.last_login_at else None,
            created_at=ensure_utc(model.created_at) if model.created_at else None,
            updated_at=ensure_utc(model.updated_at) if model.updated_at else None
        )

    async def _get_model(self, user_id) -> Optional[UserModel]:
        uid = _as_uuid(user_id)
        if uid is None:
            return None
        result = await self.session.execute(select(UserModel).where(UserModel.id == uid))
        return result.scalar_one_or_none()

    async def _update(self, user_id, **values) -> Optional[User]:
        uid = _as_uuid(user_id)
        if uid is None:
            return None
        try:
            values["updated_at"] = utc_now()
            await self.session.execute(update(UserModel).where(UserModel.id == uid).values(**values))
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to update user",
                extra={"user_id": str(uid), "fields": sorted(values), "error": str(e)}
            )
            raise
        return await self.get_by_id(uid)

    async def create(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password_hash: str,
        role: UserRole = UserRole.USER,
        tier: UserTier = UserTier.FREE
    ) -> User:
        """
        Create a new user.

        Raises:
            ConflictError: if the email is already registered
        """
        new_user = UserModel(
            first_name=first_name,
            last_name=last_name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role.value,
            tier=tier.value,
            is_active=True
        )

        try:
            self.session.add(new_user)
            await self.session.commit()
            await self.session.refresh(new_user)
        except IntegrityError:
            await self.session.rollback()
            logger.warning("Duplicate email on user creation", extra={"email": email.strip().lower()})
            raise ConflictError("An account with this email already exists")
        except Exception as e:
            await self.session.rollback()
            logger.error("Failed to create user", extra={"email": email.strip().lower(), "error": str(e)})
            raise

        logger.info(
            "New user created in database",
            extra={"user_id": str(new_user.id), "role": role.value}
        )
        return self._model_to_entity(new_user)

    async def get_by_id(self, user_id) -> Optional[User]:
        model = await self._get_model(user_id)
        return self._model_to_entity(model) if model else None

    async def get_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email.strip().lower())
        )
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def update_profile(self, user_id, first_name: str, last_name: str) -> Optional[User]:
        return await self._update(user_id, first_name=first_name, last_name=last_name)

    async def update_password(self, user_id, password_hash: str) -> Optional[User]:
        """Set a new password hash and invalidate any outstanding reset token"""
        return await self._update(
            user_id,
            password_hash=password_hash,
            reset_token_hash=None,
            reset_token_expires_at=None
        )

    async def redeem_reset_token(self, user_id, token_hash: str, password_hash: str) -> bool:
        """
        Set a new password only if `token_hash` is still the user's outstanding
        reset token, consuming it. False when another redemption got there first.
        """
        uid = _as_uuid(user_id)
        if uid is None:
            return False
        try:
            result = await self.session.execute(
                update(UserModel)
                .where(UserModel.id == uid, UserModel.reset_token_hash == token_hash)
                .values(
                    password_hash=password_hash,
                    reset_token_hash=None,
                    reset_token_expires_at=None,
                    updated_at=utc_now()
                )
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("Failed to redeem reset token", extra={"user_id": str(uid), "error": str(e)})
            raise
        return result.rowcount == 1

    async def set_reset_token(self, user_id, token_hash: str, expires_at: datetime) -> None:
        await self._update(user_id, reset_token_hash=token_hash, reset_token_expires_at=expires_at)

    async def get_by_valid_reset_token(self, token_hash: str, now: datetime) -> Optional[User]:
        """User holding this unexpired reset token digest, if any"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.reset_token_hash == token_hash)
        )
        model = result.scalar_one_or_none()
        if model is None or model.reset_token_expires_at is None:
            return None
        if ensure_utc(model.reset_token_expires_at) <= now:
            return None
        return self._model_to_entity(model)

    async def update_tier(self, user_id, tier: UserTier, expires_at: Optional[datetime]) -> Optional[User]:
        return await self._update(user_id, tier=tier.value, tier_expires_at=expires_at)

    async def set_active(self, user_id, is_active: bool) -> Optional[User]:
        return await self._update(user_id, is_active=is_active)

    async def record_login(self, user_id, at: datetime) -> None:
        await self._update(user_id, last_login_at=at)

    async def ping(self) -> bool:
        """Check database reachability through this session"""
        try:
            await self.session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database ping failed", extra={"error": str(e)})
            return False

    # Aggregates for the admin console

    async def count(self, created_since: Optional[datetime] = None, is_active: Optional[bool] = None) -> int:
        stmt = select(func.count(UserModel.id))
        if created_since is not None:
            stmt = stmt.where(UserModel.created_at >= created_since)
        if is_active is not None:
            stmt = stmt.where(UserModel.is_active == is_active)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def count_by(self, column_name: str) -> Dict[str, int]:
        """Counts grouped by `tier` or `role`"""
        column = {"tier": UserModel.tier, "role": UserModel.role}[column_name]
        result = await self.session.execute(select(column, func.count(UserModel.id)).group_by(column))
        return {value: int(count) for value, count in result.all()}

    async def recent(self, limit: int = 10) -> List[User]:
        result = await self.session.execute(
            select(UserModel).order_by(UserModel.created_at.desc()).limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()]

    async def list_users(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        tier: Optional[UserTier] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> Tuple[List[User], int]:
        """Filtered, sorted page of users plus the total matching count"""
        filters = []
        if search:
            pattern = f"%{_escape_like(search.strip())}%"
            filters.append(or_(
                UserModel.first_name.ilike(pattern, escape="\\"),
                UserModel.last_name.ilike(pattern, escape="\\"),
                UserModel.email.ilike(pattern, escape="\\"),
            ))
        if tier is not None:
            filters.append(UserModel.tier == tier.value)
        if role is not None:
            filters.append(UserModel.role == role.value)
        if is_active is not None:
            filters.append(UserModel.is_active == is_active)

        column = SORTABLE_COLUMNS.get(sort_by, UserModel.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        total_result = await self.session.execute(select(func.count(UserModel.id)).where(*filters))
        total = int(total_result.scalar_one())

        result = await self.session.execute(
            select(UserModel)
            .where(*filters)
            .order_by(order, UserModel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [self._model_to_entity(m) for m in result.scalars().all()], total
