"""
Account workflows: registration, login, password reset and profile.
"""

from datetime import timedelta
from typing import Optional, Tuple
from urllib.parse import urlencode

from src.core.clock import Clock, utc_now
from src.core.exceptions.base import AuthError, ConflictError, ValidationError
from src.core.logger.logger import get_logger
from src.core.service.auth.cache.audit_store import AuditStore
from src.core.service.auth.credential_validator import CredentialValidator, credential_validator as default_validator
from src.core.service.auth.jwt_service import TokenService
from src.core.service.auth.mailer import PasswordResetMailer
from src.core.service.auth.models.audit import AuditEvent, AuthEventStatus, AuthEventType
from src.core.service.auth.models.token import TokenPair
from src.core.service.auth.models.user import User, UserRole
from src.core.service.auth.password_service import PasswordService, password_service as default_password_service
from src.core.service.auth.utils.crypto import generate_reset_token, hash_token
from src.infra.config.settings import get_settings
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

INVALID_LOGIN = "Invalid email or password"
ACCOUNT_LOCKED = "Too many failed login attempts. Try again later."
RESET_REQUESTED = "If an account with that email exists, a password reset link has been sent."
INVALID_RESET_TOKEN = "Invalid or expired reset token"


class AccountService:
    """User-facing account workflows over the account directory"""

    def __init__(
        self,
        user_repository: UserRepository,
        token_service: TokenService,
        audit_store: AuditStore,
        mailer: PasswordResetMailer,
        password_service: Optional[PasswordService] = None,
        validator: Optional[CredentialValidator] = None,
        clock: Clock = utc_now,
        metrics=None,
    ):
        self.user_repository = user_repository
        self.token_service = token_service
        self.audit_store = audit_store
        self.mailer = mailer
        self.password_service = password_service or default_password_service
        self.validator = validator or default_validator
        self.clock = clock
        self.metrics = metrics

    def _normalized_email(self, email: str) -> str:
        result = self.validator.validate_email(email)
        if not result.ok:
            raise ValidationError("Invalid email address", details={"field": "email", "reason": result.reason})
        return result.normalized

    def _record(self, name: str, *args) -> None:
        if self.metrics is not None:
            getattr(self.metrics, name)(*args)

    def _check_password_policy(self, password: str, field: str = "password") -> None:
        result = self.validator.validate_password(password)
        if not result.ok:
            raise ValidationError(
                "Password does not meet requirements",
                details={
                    "field": field,
                    "violations": [v.value for v in result.violations],
                    "messages": result.messages(),
                }
            )

    async def _audit(
        self,
        event_type: AuthEventType,
        status: AuthEventStatus,
        subject: str,
        ip_address: Optional[str] = None,
        **details
    ) -> None:
        await self.audit_store.add_event(AuditEvent(
            event_type=event_type,
            status=status,
            subject=subject,
            ip_address=ip_address,
            timestamp=self.clock(),
            details=details,
        ))

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        ip_address: Optional[str] = None
    ) -> Tuple[User, TokenPair]:
        """
        Create a user account and sign it in.

        Raises:
            ValidationError: invalid email or non-compliant password
            ConflictError: email already registered
        """
        normalized = self._normalized_email(email)
        self._check_password_policy(password)

        if await self.user_repository.get_by_email(normalized) is not None:
            raise ConflictError("An account with this email already exists")

        user = await self.user_repository.create(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=normalized,
            password_hash=self.password_service.hash_password(password),
        )

        await self._audit(AuthEventType.USER_REGISTERED, AuthEventStatus.SUCCESS, normalized, ip_address)
        logger.info("User registered", extra={"user_id": str(user.id)})
        return user, self.token_service.issue_token_pair(str(user.id))

    async def login(self, email: str, password: str, ip_address: Optional[str] = None) -> Tuple[User, TokenPair]:
        """
        Exchange credentials for a token pair.

        Unknown users, wrong passwords and deactivated accounts all fail the same
        way. Repeated failures lock the email for LOGIN_LOCKOUT_MINUTES.
        """
        subject = (email or "").strip().lower()

        if await self.audit_store.is_locked(subject):
            await self._audit(AuthEventType.LOGIN, AuthEventStatus.BLOCKED, subject, ip_address)
            self._record("record_auth_attempt", "user", False)
            raise AuthError(ACCOUNT_LOCKED, status_code=403)

        user = await self.user_repository.get_by_email(subject)
        valid = (
            user is not None
            and user.is_active
            and self.password_service.verify_password(password, user.password_hash)
        )

        if not valid:
            attempts = await self.audit_store.record_failed_login(subject)
            await self._audit(AuthEventType.LOGIN, AuthEventStatus.FAILURE, subject, ip_address, attempts=attempts)
            if attempts >= self.audit_store.max_failed_attempts:
                await self._audit(AuthEventType.ACCOUNT_LOCKED, AuthEventStatus.BLOCKED, subject, ip_address)
                self._record("record_lockout")
                logger.warning("Account locked after failed logins", extra={"attempts": attempts, "ip_address": ip_address})
            self._record("record_auth_attempt", "user", False)
            raise AuthError(INVALID_LOGIN)

        await self.audit_store.reset_failed_logins(subject)
        now = self.clock()
        await self.user_repository.record_login(user.id, now)
        await self._audit(AuthEventType.LOGIN, AuthEventStatus.SUCCESS, subject, ip_address)
        self._record("record_auth_attempt", "user", True)

        logger.info("User logged in", extra={"user_id": str(user.id)})
        return user.model_copy(update={"last_login_at": now}), self.token_service.issue_token_pair(str(user.id))

    async def forgot_password(self, email: str, ip_address: Optional[str] = None) -> str:
        """Start a reset for an existing active account. The reply never reveals whether one exists."""
        subject = (email or "").strip().lower()
        user = await self.user_repository.get_by_email(subject)

        if user is not None and user.is_active:
            token = generate_reset_token()
            expires_at = self.clock() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
            await self.user_repository.set_reset_token(user.id, hash_token(token), expires_at)

            reset_link = f"{settings.PASSWORD_RESET_URL}?{urlencode({'token': token})}"
            await self.mailer.send_reset_link(user, reset_link)
            await self._audit(AuthEventType.PASSWORD_RESET_REQUESTED, AuthEventStatus.SUCCESS, subject, ip_address)
        else:
            await self._audit(AuthEventType.PASSWORD_RESET_REQUESTED, AuthEventStatus.FAILURE, subject, ip_address)

        return RESET_REQUESTED

    async def reset_password(self, token: str, new_password: str, ip_address: Optional[str] = None) -> None:
        if not token:
            raise ValidationError(INVALID_RESET_TOKEN)

        token_hash = hash_token(token)
        user = await self.user_repository.get_by_valid_reset_token(token_hash, self.clock())
        if user is None or not user.is_active:
            raise ValidationError(INVALID_RESET_TOKEN)

        self._check_password_policy(new_password)
        redeemed = await self.user_repository.redeem_reset_token(
            user.id, token_hash, self.password_service.hash_password(new_password)
        )
        if not redeemed:
            raise ValidationError(INVALID_RESET_TOKEN)

        await self.audit_store.reset_failed_logins(user.email)
        await self._audit(AuthEventType.PASSWORD_RESET_COMPLETED, AuthEventStatus.SUCCESS, user.email, ip_address)
        self._record("record_password_reset")
        logger.info("Password reset completed", extra={"user_id": str(user.id)})

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not self.password_service.verify_password(current_password, user.password_hash):
            await self._audit(AuthEventType.PASSWORD_CHANGED, AuthEventStatus.FAILURE, user.email)
            raise AuthError("Current password is incorrect")

        self._check_password_policy(new_password, field="new_password")
        await self.user_repository.update_password(user.id, self.password_service.hash_password(new_password))
        await self._audit(AuthEventType.PASSWORD_CHANGED, AuthEventStatus.SUCCESS, user.email)
        logger.info("Password changed", extra={"user_id": str(user.id)})

    async def get_active_user(self, user_id: str) -> User:
        """User behind a verified token; deactivated or deleted users lose access immediately"""
        user = await self.user_repository.get_by_id(user_id)
        if user is None or not user.is_active:
            raise AuthError("User not found or inactive")
        return user

    async def update_profile(self, user: User, first_name: str, last_name: str) -> User:
        updated = await self.user_repository.update_profile(user.id, first_name.strip(), last_name.strip())
        if updated is None:
            raise AuthError("User not found or inactive")
        logger.info("Profile updated", extra={"user_id": str(user.id)})
        return updated

    async def ensure_admin(self, email: str, password: str) -> Optional[User]:
        """Create the bootstrap admin account if it does not exist yet"""
        normalized = self._normalized_email(email)
        existing = await self.user_repository.get_by_email(normalized)
        if existing is not None:
            if existing.role != UserRole.ADMIN:
                logger.warning("Bootstrap admin email belongs to a regular user", extra={"user_id": str(existing.id)})
            return existing

        self._check_password_policy(password)
        admin = await self.user_repository.create(
            first_name="Admin",
            last_name="User",
            email=normalized,
            password_hash=self.password_service.hash_password(password),
            role=UserRole.ADMIN,
        )
        logger.info("Bootstrap admin created", extra={"user_id": str(admin.id)})
        return admin
