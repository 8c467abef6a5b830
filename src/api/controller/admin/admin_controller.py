"""
Admin console controller.

Login yields an opaque session id which the console sends back in the admin
session header. Every route below except login, logout and status requires
an active session and extends it.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from src.api.controller.auth.dto.input_dto import (
    AdminLoginRequestDto, UpdateUserTierRequestDto, UpdateUserStatusRequestDto
)
from src.api.controller.auth.dto.output_dto import (
    AdminSessionResponseDto, AdminSessionStatusDto, AdminDataResponseDto, MessageResponseDto
)
from src.api.controller.auth.dto.error_responses import AUTH_ERROR_RESPONSES, ErrorResponse
from src.api.middleware.authentication.jwt_bearer import get_admin_session_id, require_admin_session
from src.api.utils.client import get_client_ip, get_user_agent
from src.core.dependencies import (
    get_admin_session_service, get_dashboard_service, get_entitlement_service, get_user_repository
)
from src.core.exceptions.base import NotFoundError, ValidationError
from src.core.service.admin.dashboard_service import DashboardService, user_summary
from src.core.service.auth.admin_session_service import AdminSessionService
from src.core.service.auth.models.principal import AdminPrincipal
from src.core.service.auth.models.user import UserRole, UserTier
from src.core.service.billing.entitlement_service import EntitlementService
from src.infra.repository.user_repository import SORTABLE_COLUMNS, UserRepository

router = APIRouter(prefix="/admin", tags=["Admin"])

NOT_FOUND_RESPONSE = {404: {"model": ErrorResponse, "description": "User not found"}}


def _parse_user_id(user_id: str) -> UUID:
    try:
        return UUID(user_id.strip())
    except ValueError:
        raise NotFoundError("User not found")


@router.post("/admin-login", response_model=AdminSessionResponseDto, responses=AUTH_ERROR_RESPONSES)
async def admin_login(
    body: AdminLoginRequestDto,
    request: Request,
    admin_session_service: AdminSessionService = Depends(get_admin_session_service)
):
    """
    Start an admin session. A previous session of the same admin stops
    working immediately.
    """
    session = await admin_session_service.login(
        body.email,
        body.password,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request)
    )
    return AdminSessionResponseDto(
        session_id=session.id,
        admin_id=session.admin_id,
        expires_at=session.expires_at,
        remaining_ttl=session.remaining_ttl(session.last_activity_at)
    )


@router.get("/admin-session-status", response_model=AdminSessionStatusDto)
async def admin_session_status(
    session_id: Optional[str] = Depends(get_admin_session_id),
    admin_session_service: AdminSessionService = Depends(get_admin_session_service)
):
    """Read-only; checking the status does not extend the session."""
    result = await admin_session_service.status(session_id)
    if not result.active:
        return AdminSessionStatusDto(active=False)
    return AdminSessionStatusDto(
        active=True,
        remaining_ttl=result.remaining_ttl,
        admin_id=result.session.admin_id,
        expires_at=result.session.expires_at
    )


@router.post("/admin-logout", response_model=MessageResponseDto)
async def admin_logout(
    request: Request,
    session_id: Optional[str] = Depends(get_admin_session_id),
    admin_session_service: AdminSessionService = Depends(get_admin_session_service)
):
    await admin_session_service.logout(session_id, ip_address=get_client_ip(request))
    return MessageResponseDto(message="Admin session ended")


@router.get("/admin-activity-log", response_model=AdminDataResponseDto, responses=AUTH_ERROR_RESPONSES)
async def admin_activity_log(
    limit: int = Query(50, ge=1, le=200),
    principal: AdminPrincipal = Depends(require_admin_session),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    return AdminDataResponseDto(data=await dashboard_service.activity_log(limit=limit))


@router.get("/dashboard/overview", response_model=AdminDataResponseDto, responses=AUTH_ERROR_RESPONSES)
async def dashboard_overview(
    principal: AdminPrincipal = Depends(require_admin_session),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    return AdminDataResponseDto(data=await dashboard_service.overview())


@router.get("/security/auth-metrics", response_model=AdminDataResponseDto, responses=AUTH_ERROR_RESPONSES)
async def auth_metrics(
    principal: AdminPrincipal = Depends(require_admin_session),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    return AdminDataResponseDto(data=await dashboard_service.auth_metrics())


@router.get("/system/health-metrics", response_model=AdminDataResponseDto, responses=AUTH_ERROR_RESPONSES)
async def health_metrics(
    principal: AdminPrincipal = Depends(require_admin_session),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    return AdminDataResponseDto(data=await dashboard_service.health_metrics())


@router.get("/alerts/active-alerts", response_model=AdminDataResponseDto, responses=AUTH_ERROR_RESPONSES)
async def active_alerts(
    principal: AdminPrincipal = Depends(require_admin_session),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    return AdminDataResponseDto(data=await dashboard_service.active_alerts())


@router.get("/users", response_model=AdminDataResponseDto, responses=AUTH_ERROR_RESPONSES)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    tier: Optional[UserTier] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    principal: AdminPrincipal = Depends(require_admin_session),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    if sort_by not in SORTABLE_COLUMNS:
        raise ValidationError("Invalid sort field", details={"sort_by": sort_by, "allowed": sorted(SORTABLE_COLUMNS)})
    if sort_order not in ("asc", "desc"):
        raise ValidationError("Invalid sort order", details={"sort_order": sort_order, "allowed": ["asc", "desc"]})

    data = await dashboard_service.list_users(
        page=page,
        limit=limit,
        search=search.strip() if search else None,
        tier=tier,
        role=role,
        is_active=is_active,
        sort_by=sort_by,
        sort_order=sort_order
    )
    return AdminDataResponseDto(data=data)


@router.put(
    "/users/{user_id}/tier",
    response_model=AdminDataResponseDto,
    responses={**AUTH_ERROR_RESPONSES, **NOT_FOUND_RESPONSE}
)
async def update_user_tier(
    user_id: str,
    body: UpdateUserTierRequestDto,
    principal: AdminPrincipal = Depends(require_admin_session),
    entitlement_service: EntitlementService = Depends(get_entitlement_service),
    admin_session_service: AdminSessionService = Depends(get_admin_session_service)
):
    user = await entitlement_service.set_tier(user_id, body.tier, body.duration_days)
    await admin_session_service.record_action(
        principal,
        "update_tier",
        {"user_id": str(user.id), "tier": body.tier.value, "duration_days": body.duration_days}
    )
    return AdminDataResponseDto(data={"user": user_summary(user)})


@router.put(
    "/users/{user_id}/status",
    response_model=AdminDataResponseDto,
    responses={**AUTH_ERROR_RESPONSES, **NOT_FOUND_RESPONSE}
)
async def update_user_status(
    user_id: str,
    body: UpdateUserStatusRequestDto,
    principal: AdminPrincipal = Depends(require_admin_session),
    user_repository: UserRepository = Depends(get_user_repository),
    admin_session_service: AdminSessionService = Depends(get_admin_session_service)
):
    target_id = _parse_user_id(user_id)
    if target_id == UUID(principal.subject_id) and not body.is_active:
        raise ValidationError("Admins cannot deactivate their own account")

    user = await user_repository.set_active(target_id, body.is_active)
    if user is None:
        raise NotFoundError("User not found")

    if not body.is_active:
        await admin_session_service.end_sessions(str(user.id))

    await admin_session_service.record_action(
        principal,
        "update_status",
        {"user_id": str(user.id), "is_active": body.is_active}
    )
    return AdminDataResponseDto(data={"user": user_summary(user)})
