import redis.asyncio as redis
from functools import lru_cache
from src.infra.config.settings import settings
from src.core.logger.logger import logger

@lru_cache()
def get_redis_pool():
    """Get Redis connection pool (cached)"""
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS
    )

async def get_redis() -> redis.Redis:
    """Get Redis client backed by the shared pool"""
    return redis.Redis(connection_pool=get_redis_pool())

async def close_redis() -> None:
    """Disconnect the shared pool on shutdown"""
    if get_redis_pool.cache_info().currsize:
        await get_redis_pool().disconnect()
        get_redis_pool.cache_clear()
        logger.info("Redis connection pool closed")
