"""
Read models for the admin console: overview, security and health metrics,
rule-derived alerts and the user directory listing.
"""

import os
import platform
from datetime import timedelta
from typing import Any, Dict, List, Optional

from src.core.clock import Clock, utc_now
from src.core.logger.logger import get_logger
from src.core.service.auth.cache.audit_store import AuditStore
from src.core.service.auth.models.audit import AuthEventStatus, AuthEventType
from src.core.service.auth.models.user import User, UserRole, UserTier
from src.infra.config.settings import get_settings
from src.infra.repository.prompt_repository import PromptRepository
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

FAILED_LOGIN_ALERT_THRESHOLD = 10
ERROR_RATE_ALERT_PERCENT = 5.0
ERROR_RATE_MIN_REQUESTS = 20
QUOTA_REJECTION_ALERT_THRESHOLD = 20


def user_summary(user: User) -> Dict[str, Any]:
    return {
        "id": str(user.id),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "role": user.role.value,
        "tier": user.tier.value,
        "tier_expires_at": user.tier_expires_at,
        "is_active": user.is_active,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }


class DashboardService:
    def __init__(
        self,
        user_repository: UserRepository,
        prompt_repository: PromptRepository,
        audit_store: AuditStore,
        metrics,
        storage,
        clock: Clock = utc_now,
    ):
        self.user_repository = user_repository
        self.prompt_repository = prompt_repository
        self.audit_store = audit_store
        self.metrics = metrics
        self.storage = storage
        self.clock = clock

    async def overview(self) -> Dict[str, Any]:
        now = self.clock()
        last24h = now - timedelta(hours=24)
        last7d = now - timedelta(days=7)
        last30d = now - timedelta(days=30)

        by_tier = await self.user_repository.count_by("tier")
        by_role = await self.user_repository.count_by("role")
        recent = await self.user_repository.recent(limit=10)

        return {
            "overview": {
                "total_users": await self.user_repository.count(),
                "new_users_24h": await self.user_repository.count(created_since=last24h),
                "new_users_7d": await self.user_repository.count(created_since=last7d),
                "new_users_30d": await self.user_repository.count(created_since=last30d),
                "active_users": await self.user_repository.count(is_active=True),
                "deactivated_users": await self.user_repository.count(is_active=False),
                "locked_accounts": await self.audit_store.locked_account_count(),
                "total_prompts": await self.prompt_repository.count(),
                "prompts_24h": await self.prompt_repository.count(since=last24h),
            },
            "tier_distribution": {tier.value: by_tier.get(tier.value, 0) for tier in UserTier},
            "role_distribution": {role.value: by_role.get(role.value, 0) for role in UserRole},
            "recent_registrations": [user_summary(u) for u in recent],
            "timestamp": now,
        }

    async def auth_metrics(self) -> Dict[str, Any]:
        now = self.clock()
        last24h = now - timedelta(hours=24)
        count = self.audit_store.count_events

        return {
            "last_24h": {
                "successful_logins": await count(AuthEventType.LOGIN, last24h, AuthEventStatus.SUCCESS),
                "failed_logins": await count(AuthEventType.LOGIN, last24h, AuthEventStatus.FAILURE),
                "blocked_logins": await count(AuthEventType.LOGIN, last24h, AuthEventStatus.BLOCKED),
                "lockouts": await count(AuthEventType.ACCOUNT_LOCKED, last24h),
                "registrations": await count(AuthEventType.USER_REGISTERED, last24h),
                "password_reset_requests": await count(AuthEventType.PASSWORD_RESET_REQUESTED, last24h),
                "password_resets_completed": await count(AuthEventType.PASSWORD_RESET_COMPLETED, last24h),
                "admin_logins": await count(AuthEventType.ADMIN_LOGIN, last24h, AuthEventStatus.SUCCESS),
                "failed_admin_logins": await count(AuthEventType.ADMIN_LOGIN, last24h, AuthEventStatus.FAILURE),
            },
            "locked_accounts": await self.audit_store.locked_account_count(),
            "process": self.metrics.get_metrics_summary(),
            "timestamp": now,
        }

    async def _service_status(self) -> Dict[str, str]:
        database_ok = await self.user_repository.ping()
        storage_ok = await self.storage.ping()
        return {
            "database": "healthy" if database_ok else "error",
            "storage": "healthy" if storage_ok else "error",
            "storage_backend": settings.STORAGE_BACKEND,
        }

    async def health_metrics(self) -> Dict[str, Any]:
        load_average = list(os.getloadavg()) if hasattr(os, "getloadavg") else None
        return {
            "system": {
                "uptime_seconds": self.metrics.uptime_seconds(),
                "platform": {
                    "system": platform.system(),
                    "release": platform.release(),
                    "machine": platform.machine(),
                    "python_version": platform.python_version(),
                },
                "cpu": {"cores": os.cpu_count(), "load_average": load_average},
            },
            "api": self.metrics.get_request_stats(),
            "services": await self._service_status(),
            "timestamp": self.clock(),
        }

    async def active_alerts(self) -> Dict[str, Any]:
        now = self.clock()
        alerts: List[Dict[str, Any]] = []

        def add(alert_type: str, severity: str, title: str, description: str) -> None:
            alerts.append({
                "id": len(alerts) + 1,
                "type": alert_type,
                "severity": severity,
                "title": title,
                "description": description,
                "timestamp": now,
                "status": "active",
            })

        failed = await self.audit_store.count_events(
            AuthEventType.LOGIN, now - timedelta(hours=1), AuthEventStatus.FAILURE
        )
        if failed >= FAILED_LOGIN_ALERT_THRESHOLD:
            add("security", "high", "Failed login spike", f"{failed} failed login attempts in the last hour")

        locked = await self.audit_store.locked_account_count()
        if locked:
            add("security", "medium", "Locked accounts", f"{locked} account(s) currently locked after failed logins")

        requests = self.metrics.get_request_stats()
        if requests["requests"] >= ERROR_RATE_MIN_REQUESTS and requests["error_rate_percent"] >= ERROR_RATE_ALERT_PERCENT:
            add("system", "high", "High error rate", f"{requests['error_rate_percent']}% of requests failed in the last hour")

        services = await self._service_status()
        if services["storage"] != "healthy":
            add("system", "high", "Storage unreachable", f"The {settings.STORAGE_BACKEND} storage backend did not respond")
        if services["database"] != "healthy":
            add("system", "high", "Database unreachable", "The database did not respond to a ping")

        rejections = self.metrics.recent_quota_rejections()
        if rejections >= QUOTA_REJECTION_ALERT_THRESHOLD:
            add("business", "medium", "Quota rejection spike", f"{rejections} submissions rejected for quota in the last hour")

        return {
            "alerts": alerts,
            "summary": {
                "total": len(alerts),
                "by_type": {t: sum(1 for a in alerts if a["type"] == t) for t in ("security", "system", "business")},
                "by_severity": {s: sum(1 for a in alerts if a["severity"] == s) for s in ("high", "medium", "low")},
            },
        }

    async def list_users(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        tier: Optional[UserTier] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        users, total = await self.user_repository.list_users(
            page=page,
            limit=limit,
            search=search,
            tier=tier,
            role=role,
            is_active=is_active,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        pages = (total + limit - 1) // limit if limit else 0
        return {
            "users": [user_summary(u) for u in users],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": pages,
                "has_next": page < pages,
                "has_prev": page > 1,
            },
        }

    async def activity_log(self, limit: int = 50) -> Dict[str, Any]:
        events = await self.audit_store.recent_events(limit=limit, admin_only=True)
        return {"events": [e.model_dump(mode="json") for e in events], "count": len(events)}
