"""
Shared test configuration and fixtures.

Storage runs on the process-local backend and the database on in-memory
SQLite, so the suite needs neither Redis nor Postgres.
"""

import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-json4ai-suite")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("TIER_LIMIT_FREE", "3")
os.environ.setdefault("TIER_LIMIT_STANDARD", "5")
os.environ.setdefault("TIER_LIMIT_PREMIUM", "10")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.app import create_app
from src.api.utils.metrics import get_metrics
from src.core import dependencies
from src.core.service.auth.cache.audit_store import InMemoryAuditStore
from src.core.service.auth.cache.session_store import InMemoryAdminSessionStore
from src.core.service.auth.jwt_service import TokenService
from src.core.service.auth.mailer import PasswordResetMailer
from src.core.service.auth.models.user import UserRole
from src.core.service.auth.password_service import PasswordService
from src.core.service.billing.payment_gateway import PaymentGateway
from src.core.service.usage.cache.usage_store import InMemoryUsageStore
from src.infra.database import get_async_session
from src.infra.models import Base
from src.infra.repository.prompt_repository import PromptRepository
from src.infra.repository.user_repository import UserRepository

FROZEN_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
TEST_PASSWORD = "Str0ng!Pass"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n!Pass"


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class CapturingMailer(PasswordResetMailer):
    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    async def send_reset_link(self, user, reset_link: str) -> None:
        self.sent.append((user.email, reset_link))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1].split("token=", 1)[1]


class FakePaymentGateway(PaymentGateway):
    def __init__(self):
        self.orders: List[Dict[str, Any]] = []

    async def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        self.orders.append(order)
        return {
            "order_id": order["order_id"],
            "order_status": "ACTIVE",
            "payment_link": f"https://payments.example.com/pay/{order['order_id']}",
        }


class _AsyncSessionWrapper:
    """Exposes a sync SQLAlchemy session through the AsyncSession calls the repositories make"""

    def __init__(self, sync_session) -> None:
        self._sync = sync_session

    async def execute(self, *args, **kwargs):
        return self._sync.execute(*args, **kwargs)

    async def scalar(self, *args, **kwargs):
        return self._sync.scalar(*args, **kwargs)

    async def get(self, *args, **kwargs):
        return self._sync.get(*args, **kwargs)

    def add(self, obj) -> None:
        self._sync.add(obj)

    async def delete(self, obj) -> None:
        self._sync.delete(obj)

    async def flush(self) -> None:
        self._sync.flush()

    async def commit(self) -> None:
        self._sync.commit()

    async def refresh(self, obj) -> None:
        self._sync.refresh(obj)

    async def rollback(self) -> None:
        self._sync.rollback()

    async def close(self) -> None:
        self._sync.close()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sync_session = SessionLocal()
    try:
        yield _AsyncSessionWrapper(sync_session)
    finally:
        sync_session.close()
        engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def password_service() -> PasswordService:
    return PasswordService(rounds=1000)


@pytest.fixture
def user_repository(db_session) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def prompt_repository(db_session) -> PromptRepository:
    return PromptRepository(db_session)


@pytest.fixture
def token_service(clock) -> TokenService:
    return TokenService(clock=clock)


@pytest.fixture
def audit_store(clock) -> InMemoryAuditStore:
    return InMemoryAuditStore(clock=clock)


@pytest.fixture
def session_store() -> InMemoryAdminSessionStore:
    return InMemoryAdminSessionStore()


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def mailer() -> CapturingMailer:
    return CapturingMailer()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture(autouse=True)
def reset_process_state():
    get_metrics().reset()
    dependencies.reset_memory_stores()
    yield
    get_metrics().reset()


@pytest.fixture
def app(db_session, clock, audit_store, session_store, usage_store, mailer, payment_gateway):
    """App with storage, clock, mailer and gateway swapped for test doubles"""
    application = create_app()

    async def override_session():
        yield db_session

    application.dependency_overrides[get_async_session] = override_session
    application.dependency_overrides[dependencies.get_clock] = lambda: clock
    application.dependency_overrides[dependencies.get_audit_store] = lambda: audit_store
    application.dependency_overrides[dependencies.get_admin_session_store] = lambda: session_store
    application.dependency_overrides[dependencies.get_usage_store] = lambda: usage_store
    application.dependency_overrides[dependencies.get_password_reset_mailer] = lambda: mailer
    application.dependency_overrides[dependencies.get_payment_gateway] = lambda: payment_gateway
    return application


@pytest.fixture
def client(app) -> TestClient:
    # No context manager: startup would connect to the configured database
    return TestClient(app)


@pytest.fixture
async def admin_user(user_repository, password_service):
    return await user_repository.create(
        first_name="Admin",
        last_name="User",
        email=ADMIN_EMAIL,
        password_hash=password_service.hash_password(ADMIN_PASSWORD),
        role=UserRole.ADMIN,
    )


def register_user(client: TestClient, email: str = "jane@example.com", password: str = TEST_PASSWORD) -> Dict[str, Any]:
    response = client.post("/api/auth/register", json={
        "first_name": "Jane",
        "last_name": "Doe",
        "email": email,
        "password": password,
    })
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def admin_login(client: TestClient, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> str:
    response = client.post("/api/admin/admin-login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["session_id"]
