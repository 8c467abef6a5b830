import asyncio

import pytest
from sqlalchemy import update

from src.core.exceptions.base import AuthError
from src.core.service.auth.admin_session_service import AdminSessionService
from src.core.service.auth.models.audit import AuthEventStatus, AuthEventType
from src.core.service.auth.models.session import SessionState
from src.core.service.auth.models.user import UserRole
from src.infra.models import UserModel

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, TEST_PASSWORD


@pytest.fixture
def admin_sessions(session_store, user_repository, audit_store, password_service, clock):
    return AdminSessionService(
        session_store,
        user_repository,
        audit_store,
        password_service=password_service,
        clock=clock,
    )


async def test_login_creates_active_session(admin_sessions, admin_user, clock):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD, ip_address="203.0.113.7")

    status = await admin_sessions.status(session.id)

    assert session.admin_id == str(admin_user.id)
    assert status.active is True
    assert status.remaining_ttl == admin_sessions.idle_ttl.total_seconds()
    assert session.state_at(clock()) == SessionState.ACTIVE


async def test_second_login_revokes_first_session(admin_sessions, admin_user, clock):
    first = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    clock.advance(seconds=5)
    second = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    assert (await admin_sessions.status(first.id)).active is False
    assert (await admin_sessions.status(second.id)).active is True

    with pytest.raises(AuthError):
        await admin_sessions.authorize(first.id)


async def test_concurrent_logins_leave_exactly_one_active_session(admin_sessions, admin_user):
    sessions = await asyncio.gather(*[admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD) for _ in range(5)])

    statuses = [await admin_sessions.status(s.id) for s in sessions]

    assert sum(1 for s in statuses if s.active) == 1


async def test_session_expires_after_idle_window(admin_sessions, admin_user, clock):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    clock.advance(seconds=admin_sessions.idle_ttl.total_seconds())

    status = await admin_sessions.status(session.id)
    assert status.active is False
    assert status.remaining_ttl == 0


async def test_status_does_not_extend_the_session(admin_sessions, admin_user, clock):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    idle_seconds = admin_sessions.idle_ttl.total_seconds()

    clock.advance(seconds=idle_seconds - 10)
    assert (await admin_sessions.status(session.id)).remaining_ttl == 10

    clock.advance(seconds=10)
    assert (await admin_sessions.status(session.id)).active is False


async def test_authorize_records_activity(admin_sessions, admin_user, clock):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    idle_seconds = admin_sessions.idle_ttl.total_seconds()

    clock.advance(seconds=idle_seconds - 10)
    principal = await admin_sessions.authorize(session.id)
    clock.advance(seconds=idle_seconds - 10)

    assert principal.role == UserRole.ADMIN
    assert principal.is_revocable is True
    assert (await admin_sessions.status(session.id)).active is True


async def test_activity_cannot_outlive_max_lifetime(admin_sessions, admin_user, clock):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    step = admin_sessions.idle_ttl.total_seconds() / 2

    elapsed = 0
    while elapsed + step < admin_sessions.max_lifetime.total_seconds():
        clock.advance(seconds=step)
        elapsed += step
        await admin_sessions.authorize(session.id)

    clock.advance(seconds=admin_sessions.max_lifetime.total_seconds() - elapsed)

    with pytest.raises(AuthError):
        await admin_sessions.authorize(session.id)


async def test_logout_revokes_and_is_idempotent(admin_sessions, admin_user, audit_store):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    await admin_sessions.logout(session.id)
    await admin_sessions.logout(session.id)
    await admin_sessions.logout("unknown-session-id-that-is-well-formed-0000")
    await admin_sessions.logout(None)

    assert (await admin_sessions.status(session.id)).active is False
    logouts = [e for e in await audit_store.recent_events() if e.event_type == AuthEventType.ADMIN_LOGOUT]
    assert len(logouts) == 1


@pytest.mark.parametrize("session_id", [None, "", "short", "not a valid id!" * 4])
async def test_missing_or_malformed_ids_read_as_inactive(admin_sessions, session_id):
    status = await admin_sessions.status(session_id)

    assert status.active is False
    with pytest.raises(AuthError):
        await admin_sessions.authorize(session_id)


async def test_wrong_password_and_unknown_email_fail_identically(admin_sessions, admin_user):
    with pytest.raises(AuthError) as wrong_password:
        await admin_sessions.login(ADMIN_EMAIL, "Wr0ng!Pass")
    with pytest.raises(AuthError) as unknown_email:
        await admin_sessions.login("nobody@example.com", ADMIN_PASSWORD)

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.status_code == unknown_email.value.status_code == 401


async def test_regular_user_cannot_open_admin_session(admin_sessions, user_repository, password_service):
    await user_repository.create(
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
        password_hash=password_service.hash_password(TEST_PASSWORD),
    )

    with pytest.raises(AuthError):
        await admin_sessions.login("jane@example.com", TEST_PASSWORD)


async def test_repeated_failures_lock_admin_login(admin_sessions, admin_user, audit_store, clock):
    for _ in range(audit_store.max_failed_attempts):
        with pytest.raises(AuthError):
            await admin_sessions.login(ADMIN_EMAIL, "Wr0ng!Pass")

    with pytest.raises(AuthError) as exc_info:
        await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert exc_info.value.status_code == 403

    clock.advance(seconds=audit_store.lockout_window.total_seconds())
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert (await admin_sessions.status(session.id)).active is True


async def test_login_events_are_audited(admin_sessions, admin_user, audit_store):
    with pytest.raises(AuthError):
        await admin_sessions.login(ADMIN_EMAIL, "Wr0ng!Pass")
    await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    events = await audit_store.recent_events(admin_only=True)

    assert [e.status for e in events] == [AuthEventStatus.SUCCESS, AuthEventStatus.FAILURE]
    assert all(e.event_type == AuthEventType.ADMIN_LOGIN for e in events)


async def test_deactivated_admin_loses_open_session(admin_sessions, admin_user, user_repository, session_store):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    await user_repository.set_active(admin_user.id, False)

    with pytest.raises(AuthError):
        await admin_sessions.authorize(session.id)
    assert (await session_store.get(session.id)).revoked is True

    await user_repository.set_active(admin_user.id, True)
    assert (await admin_sessions.status(session.id)).active is False


async def test_demoted_admin_reads_as_inactive(admin_sessions, admin_user, db_session, session_store):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    await db_session.execute(
        update(UserModel).where(UserModel.id == admin_user.id).values(role=UserRole.USER.value)
    )
    await db_session.commit()

    assert (await admin_sessions.status(session.id)).active is False
    assert await session_store.get_active_id(str(admin_user.id)) == session.id

    with pytest.raises(AuthError):
        await admin_sessions.authorize(session.id)
    assert await session_store.get_active_id(str(admin_user.id)) is None


async def test_end_sessions_revokes_current_session(admin_sessions, admin_user):
    session = await admin_sessions.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    assert await admin_sessions.end_sessions(str(admin_user.id)) is True
    assert await admin_sessions.end_sessions(str(admin_user.id)) is False

    with pytest.raises(AuthError):
        await admin_sessions.authorize(session.id)
