from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.core.dependencies import get_usage_store, get_user_repository
from src.core.service.usage.cache.usage_store import UsageStore
from src.infra.config.settings import settings
from src.infra.repository.user_repository import UserRepository

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    user_repository: UserRepository = Depends(get_user_repository),
    usage_store: UsageStore = Depends(get_usage_store)
):
    """
    Liveness plus dependency status. Answers 503 when the database or the
    session/usage storage cannot be reached.
    """
    services = {
        "database": "healthy" if await user_repository.ping() else "unhealthy",
        "storage": "healthy" if await usage_store.ping() else "unhealthy",
    }
    healthy = all(value == "healthy" for value in services.values())

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "services": services,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
    )
