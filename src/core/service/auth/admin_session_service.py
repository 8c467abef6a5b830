from datetime import timedelta
from typing import Optional

from src.core.clock import Clock, utc_now
from src.core.exceptions.base import AuthError
from src.core.logger.logger import get_logger
from src.core.service.auth.cache.audit_store import AuditStore
from src.core.service.auth.cache.session_store import AdminSessionStore
from src.core.service.auth.models.audit import AuditEvent, AuthEventStatus, AuthEventType
from src.core.service.auth.models.principal import AdminPrincipal
from src.core.service.auth.models.session import AdminSession, AdminSessionStatus, SessionState
from src.core.service.auth.models.user import UserRole
from src.core.service.auth.password_service import PasswordService, password_service as default_password_service
from src.core.service.auth.utils.crypto import generate_session_id, is_well_formed_session_id
from src.infra.config.settings import get_settings
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

INVALID_CREDENTIALS = "Invalid credentials"
INACTIVE_SESSION = "Admin session is not active"


class AdminSessionService:
    """
    Elevated, server-tracked admin sessions.

    Per admin: NONE -> ACTIVE -> {EXPIRED, REVOKED}. A new login supersedes the
    previous session atomically, so at most one session per admin is active.
    Expiry is evaluated lazily on every check; `status` never extends it, only
    `authorize` (used by real admin routes) records activity.
    """

    def __init__(
        self,
        session_store: AdminSessionStore,
        user_repository: UserRepository,
        audit_store: AuditStore,
        password_service: Optional[PasswordService] = None,
        clock: Clock = utc_now,
        metrics=None,
    ):
        self.session_store = session_store
        self.user_repository = user_repository
        self.audit_store = audit_store
        self.password_service = password_service or default_password_service
        self.clock = clock
        self.metrics = metrics
        self.idle_ttl = timedelta(minutes=settings.ADMIN_SESSION_TTL_MINUTES)
        self.max_lifetime = timedelta(minutes=settings.ADMIN_SESSION_MAX_LIFETIME_MINUTES)

    def _record_attempt(self, success: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_auth_attempt("admin", success)

    def _lockout_key(self, email: str) -> str:
        return f"admin:{email.strip().lower()}"

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AdminSession:
        lockout_key = self._lockout_key(email)
        if await self.audit_store.is_locked(lockout_key):
            await self.audit_store.add_event(AuditEvent(
                event_type=AuthEventType.ADMIN_LOGIN,
                status=AuthEventStatus.BLOCKED,
                subject=email.strip().lower(),
                ip_address=ip_address,
                timestamp=self.clock(),
            ))
            self._record_attempt(False)
            raise AuthError("Too many failed attempts. Try again later.", status_code=403)

        user = await self.user_repository.get_by_email(email)
        valid = (
            user is not None
            and user.is_active
            and user.role == UserRole.ADMIN
            and self.password_service.verify_password(password, user.password_hash)
        )

        if not valid:
            await self.audit_store.record_failed_login(lockout_key)
            await self.audit_store.add_event(AuditEvent(
                event_type=AuthEventType.ADMIN_LOGIN,
                status=AuthEventStatus.FAILURE,
                subject=email.strip().lower(),
                ip_address=ip_address,
                timestamp=self.clock(),
            ))
            logger.warning("Admin login rejected", extra={"ip_address": ip_address})
            self._record_attempt(False)
            raise AuthError(INVALID_CREDENTIALS)

        await self.audit_store.reset_failed_logins(lockout_key)

        now = self.clock()
        session = AdminSession(
            id=generate_session_id(),
            admin_id=str(user.id),
            created_at=now,
            last_activity_at=now,
            idle_ttl_seconds=int(self.idle_ttl.total_seconds()),
            max_lifetime_seconds=int(self.max_lifetime.total_seconds()),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        superseded = await self.session_store.activate(session)
        self._record_attempt(True)

        await self.audit_store.add_event(AuditEvent(
            event_type=AuthEventType.ADMIN_LOGIN,
            status=AuthEventStatus.SUCCESS,
            subject=session.admin_id,
            ip_address=ip_address,
            timestamp=now,
            details={"superseded_previous_session": superseded is not None},
        ))
        logger.info(
            "Admin login successful",
            extra={"admin_id": session.admin_id, "superseded_previous_session": superseded is not None}
        )
        return session

    async def _load_active(self, session_id: Optional[str]) -> Optional[AdminSession]:
        """The session if it is the admin's current, unexpired, unrevoked one"""
        if not session_id or not is_well_formed_session_id(session_id):
            return None

        session = await self.session_store.get(session_id)
        if session is None:
            return None

        if session.state_at(self.clock()) != SessionState.ACTIVE:
            return None

        if await self.session_store.get_active_id(session.admin_id) != session.id:
            return None

        return session

    async def _owner_is_admin(self, session: AdminSession) -> bool:
        user = await self.user_repository.get_by_id(session.admin_id)
        return user is not None and user.is_active and user.role == UserRole.ADMIN

    async def end_sessions(self, admin_id: str) -> bool:
        """Revoke whatever session the admin currently holds"""
        active_id = await self.session_store.get_active_id(admin_id)
        if active_id is None:
            return False
        return await self.session_store.revoke(active_id, self.clock())

    async def status(self, session_id: Optional[str]) -> AdminSessionStatus:
        """Read-only check; missing, unknown and revoked ids all read as inactive"""
        session = await self._load_active(session_id)
        if session is None or not await self._owner_is_admin(session):
            return AdminSessionStatus(active=False, remaining_ttl=0)

        return AdminSessionStatus(
            active=True,
            remaining_ttl=session.remaining_ttl(self.clock()),
            session=session,
        )

    async def authorize(self, session_id: Optional[str]) -> AdminPrincipal:
        """Gate for admin routes: requires an active session and records activity"""
        session = await self._load_active(session_id)
        if session is None:
            raise AuthError(INACTIVE_SESSION)

        now = self.clock()
        if not await self._owner_is_admin(session):
            await self.session_store.revoke(session.id, now)
            logger.warning(
                "Admin session revoked, account is no longer an active admin",
                extra={"admin_id": session.admin_id}
            )
            raise AuthError(INACTIVE_SESSION)

        if not await self.session_store.touch(session.id, now):
            # Superseded or revoked between the check and the touch
            raise AuthError(INACTIVE_SESSION)

        touched = session.model_copy(update={"last_activity_at": now})
        return AdminPrincipal(
            subject_id=session.admin_id,
            role=UserRole.ADMIN,
            session_id=session.id,
            expires_at=touched.expires_at,
        )

    async def logout(self, session_id: Optional[str], ip_address: Optional[str] = None) -> None:
        """Revoke the session; unknown or already revoked ids are a no-op"""
        if not session_id or not is_well_formed_session_id(session_id):
            return

        session = await self.session_store.get(session_id)
        revoked = await self.session_store.revoke(session_id, self.clock())
        if revoked and session is not None:
            await self.audit_store.add_event(AuditEvent(
                event_type=AuthEventType.ADMIN_LOGOUT,
                status=AuthEventStatus.SUCCESS,
                subject=session.admin_id,
                ip_address=ip_address,
                timestamp=self.clock(),
            ))
            logger.info("Admin logout", extra={"admin_id": session.admin_id})

    async def record_action(self, principal: AdminPrincipal, action: str, details: dict) -> None:
        await self.audit_store.add_event(AuditEvent(
            event_type=AuthEventType.ADMIN_ACTION,
            status=AuthEventStatus.SUCCESS,
            subject=principal.subject_id,
            timestamp=self.clock(),
            details={"action": action, **details},
        ))
