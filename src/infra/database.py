"""
Database connection with SQLAlchemy async ORM
"""

from typing import Optional, AsyncGenerator
from functools import lru_cache
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine

from src.infra.config.settings import get_settings
from src.infra.models import Base
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class DatabaseManager:
    """SQLAlchemy async database manager"""

    def __init__(self, database_url: Optional[str] = None):
        self._database_url = database_url or settings.DATABASE_URL
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    def _safe_url(self) -> str:
        """Connection URL with the password masked, for logs"""
        return make_url(self._database_url).render_as_string(hide_password=True)

    async def connect(self) -> AsyncEngine:
        """Initialize database engine and session factory"""
        if self._engine is not None:
            return self._engine

        try:
            self._engine = create_async_engine(
                self._database_url,
                echo=settings.DB_LOGGING_ENABLED,
                pool_pre_ping=True,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_recycle=3600
            )

            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False
            )

            if settings.DB_AUTO_CREATE_TABLES:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)

            logger.info("Connected to database", extra={"database_url": self._safe_url()})
            return self._engine

        except Exception as e:
            logger.error(
                "Failed to connect to database",
                extra={"database_url": self._safe_url(), "error": str(e)}
            )
            raise

    async def close(self):
        """Close database engine"""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine closed")
            self._engine = None
            self._session_factory = None

    def get_session_factory(self) -> Optional[async_sessionmaker]:
        """Get the session factory"""
        return self._session_factory


@lru_cache()
def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance (cached)"""
    return DatabaseManager()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session
    Use with FastAPI Depends()
    """
    db_manager = get_database_manager()

    if db_manager.get_session_factory() is None:
        await db_manager.connect()

    session_factory = db_manager.get_session_factory()
    if session_factory is None:
        raise RuntimeError("Database session factory not initialized")

    async with session_factory() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
