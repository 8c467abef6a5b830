"""
FastAPI dependency injection functions.
Clean, maintainable dependency resolution using FastAPI's native DI system.

STORAGE_BACKEND selects where shared state (admin sessions, usage counters,
audit events) lives: Redis, or process-local stores kept as singletons here.
"""

from functools import lru_cache
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.utils.metrics import SimpleMetrics, get_metrics
from src.core.clock import Clock, utc_now
from src.core.service.admin.dashboard_service import DashboardService
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.admin_session_service import AdminSessionService
from src.core.service.auth.cache.audit_store import AuditStore, InMemoryAuditStore, RedisAuditStore
from src.core.service.auth.cache.session_store import (
    AdminSessionStore, InMemoryAdminSessionStore, RedisAdminSessionStore
)
from src.core.service.auth.jwt_service import TokenService
from src.core.service.auth.mailer import LoggingPasswordResetMailer, PasswordResetMailer
from src.core.service.billing.entitlement_service import EntitlementService
from src.core.service.billing.payment_gateway import HttpPaymentGateway, PaymentGateway
from src.core.service.prompt.prompt_service import PromptService
from src.core.service.usage.cache.usage_store import InMemoryUsageStore, RedisUsageStore, UsageStore
from src.core.service.usage.usage_tracker import UsageTracker
from src.infra.config.redis import get_redis
from src.infra.config.settings import get_settings
from src.infra.database import get_async_session
from src.infra.repository.payment_repository import PaymentRepository
from src.infra.repository.prompt_repository import PromptRepository
from src.infra.repository.user_repository import UserRepository
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


def _use_memory() -> bool:
    return settings.STORAGE_BACKEND == "memory"


@lru_cache()
def get_memory_session_store() -> InMemoryAdminSessionStore:
    return InMemoryAdminSessionStore()


@lru_cache()
def get_memory_audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@lru_cache()
def get_memory_usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


def reset_memory_stores() -> None:
    """Empty the process-local stores (used between tests)."""
    get_memory_session_store().clear()
    get_memory_audit_store().clear()
    get_memory_usage_store().clear()


def get_clock() -> Clock:
    """Time source for expiry and period calculations."""
    return utc_now


def get_metrics_collector() -> SimpleMetrics:
    return get_metrics()


async def get_admin_session_store() -> AdminSessionStore:
    if _use_memory():
        return get_memory_session_store()
    return RedisAdminSessionStore(await get_redis())


async def get_audit_store(clock: Clock = Depends(get_clock)) -> AuditStore:
    if _use_memory():
        return get_memory_audit_store()
    return RedisAuditStore(await get_redis(), clock=clock)


async def get_usage_store() -> UsageStore:
    if _use_memory():
        return get_memory_usage_store()
    return RedisUsageStore(await get_redis())


async def get_user_repository(session: AsyncSession = Depends(get_async_session)) -> UserRepository:
    """Get user repository with SQLAlchemy session dependency."""
    return UserRepository(session)


async def get_prompt_repository(session: AsyncSession = Depends(get_async_session)) -> PromptRepository:
    """Get prompt repository with SQLAlchemy session dependency."""
    return PromptRepository(session)


async def get_payment_repository(session: AsyncSession = Depends(get_async_session)) -> PaymentRepository:
    return PaymentRepository(session)


def get_token_service(clock: Clock = Depends(get_clock)) -> TokenService:
    return TokenService(clock=clock)


def get_password_reset_mailer() -> PasswordResetMailer:
    return LoggingPasswordResetMailer()


def get_payment_gateway() -> PaymentGateway:
    return HttpPaymentGateway()


async def get_account_service(
    user_repository: UserRepository = Depends(get_user_repository),
    token_service: TokenService = Depends(get_token_service),
    audit_store: AuditStore = Depends(get_audit_store),
    mailer: PasswordResetMailer = Depends(get_password_reset_mailer),
    clock: Clock = Depends(get_clock),
    metrics: SimpleMetrics = Depends(get_metrics_collector)
) -> AccountService:
    """Get account service with repository, token and audit dependencies."""
    return AccountService(
        user_repository,
        token_service,
        audit_store,
        mailer,
        clock=clock,
        metrics=metrics,
    )


async def get_admin_session_service(
    session_store: AdminSessionStore = Depends(get_admin_session_store),
    user_repository: UserRepository = Depends(get_user_repository),
    audit_store: AuditStore = Depends(get_audit_store),
    clock: Clock = Depends(get_clock),
    metrics: SimpleMetrics = Depends(get_metrics_collector)
) -> AdminSessionService:
    return AdminSessionService(session_store, user_repository, audit_store, clock=clock, metrics=metrics)


async def get_usage_tracker(
    usage_store: UsageStore = Depends(get_usage_store),
    clock: Clock = Depends(get_clock)
) -> UsageTracker:
    return UsageTracker(usage_store, clock=clock)


async def get_prompt_service(
    prompt_repository: PromptRepository = Depends(get_prompt_repository),
    usage_tracker: UsageTracker = Depends(get_usage_tracker),
    clock: Clock = Depends(get_clock),
    metrics: SimpleMetrics = Depends(get_metrics_collector)
) -> PromptService:
    return PromptService(prompt_repository, usage_tracker, clock=clock, metrics=metrics)


async def get_entitlement_service(
    user_repository: UserRepository = Depends(get_user_repository),
    usage_tracker: UsageTracker = Depends(get_usage_tracker),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    payment_repository: PaymentRepository = Depends(get_payment_repository),
    clock: Clock = Depends(get_clock)
) -> EntitlementService:
    return EntitlementService(user_repository, usage_tracker, payment_gateway, payment_repository, clock=clock)


async def get_dashboard_service(
    user_repository: UserRepository = Depends(get_user_repository),
    prompt_repository: PromptRepository = Depends(get_prompt_repository),
    audit_store: AuditStore = Depends(get_audit_store),
    usage_store: UsageStore = Depends(get_usage_store),
    clock: Clock = Depends(get_clock),
    metrics: SimpleMetrics = Depends(get_metrics_collector)
) -> DashboardService:
    return DashboardService(
        user_repository,
        prompt_repository,
        audit_store,
        metrics,
        storage=usage_store,
        clock=clock,
    )
