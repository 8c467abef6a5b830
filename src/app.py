from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.infra.config.settings import settings
from src.infra.config.redis import close_redis
from src.infra.database import get_database_manager
from src.infra.repository.user_repository import UserRepository
from src.core.logger.logger import logger
from src.core.dependencies import get_audit_store
from src.core.clock import utc_now
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.jwt_service import TokenService
from src.core.service.auth.mailer import LoggingPasswordResetMailer
from src.api.router import health, auth, user, prompt, payment, admin
from src.api.middleware.security.rate_limiter import EnhancedRateLimitMiddleware
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler


async def bootstrap_admin() -> None:
    """Create the admin account named by ADMIN_EMAIL / ADMIN_PASSWORD if missing"""
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        return

    session_factory = get_database_manager().get_session_factory()
    async with session_factory() as session:
        account_service = AccountService(
            UserRepository(session),
            TokenService(),
            await get_audit_store(utc_now),
            LoggingPasswordResetMailer(),
        )
        await account_service.ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
JSON4AI API - accounts, admin console and usage-metered structured prompts.

## Services
- **Accounts**: registration, login, password reset and profile
- **Prompts**: structured prompt submission gated by the tier's monthly allowance
- **Payments**: plan catalogue, order creation and payment webhooks
- **Admin**: server-tracked admin sessions, dashboard and user management

## Authentication
User endpoints require `Authorization: Bearer <access token>`.
Admin endpoints require the admin session header returned by `/api/admin/admin-login`.
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=600,  # 10 minutes
    )

    # Rate limiting runs inside request logging so rejections carry a request id
    app.add_middleware(EnhancedRateLimitMiddleware)

    # Request logging middleware (added last, so it is the outermost)
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, GlobalErrorHandler.http_exception_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(auth.router, prefix="/api")
    app.include_router(auth.token_router, prefix="/api")
    app.include_router(user.router, prefix="/api")
    app.include_router(prompt.router, prefix="/api")
    app.include_router(payment.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.on_event("startup")
    async def startup_event():
        logger.info(
            "Starting API",
            extra={"service": settings.APP_NAME, "version": settings.APP_VERSION, "storage": settings.STORAGE_BACKEND}
        )
        await get_database_manager().connect()
        await bootstrap_admin()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down API", extra={"service": settings.APP_NAME, "version": settings.APP_VERSION})
        await get_database_manager().close()
        if settings.STORAGE_BACKEND == "redis":
            await close_redis()

    return app
