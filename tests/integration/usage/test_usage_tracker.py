import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.core.service.auth.models.user import UserTier
from src.core.service.usage.models import UsagePeriod
from src.core.service.usage.usage_tracker import UsageTracker

LIMITS = {UserTier.FREE: 5, UserTier.STANDARD: 20, UserTier.PREMIUM: 50}


@pytest.fixture
def tracker(usage_store, clock):
    return UsageTracker(usage_store, clock=clock, period=UsagePeriod.MONTHLY, limits=dict(LIMITS))


async def test_reserve_counts_up_to_the_ceiling(tracker):
    user_id = uuid4()

    results = [await tracker.check_and_reserve(user_id, UserTier.FREE) for _ in range(6)]

    assert [r.allowed for r in results] == [True] * 5 + [False]
    assert [r.used for r in results] == [1, 2, 3, 4, 5, 5]
    assert results[4].remaining == 0
    assert results[5].remaining == 0
    assert results[5].limit == 5


@pytest.mark.parametrize("remaining, callers", [(1, 10), (5, 5), (5, 40), (3, 100)])
async def test_concurrent_reservations_admit_exactly_the_remaining_slots(tracker, remaining, callers):
    user_id = uuid4()
    for _ in range(LIMITS[UserTier.FREE] - remaining):
        await tracker.check_and_reserve(user_id, UserTier.FREE)

    results = await asyncio.gather(*[tracker.check_and_reserve(user_id, UserTier.FREE) for _ in range(callers)])

    assert sum(1 for r in results if r.allowed) == min(remaining, callers)
    assert (await tracker.get_usage(user_id, UserTier.FREE)).used == LIMITS[UserTier.FREE]


async def test_users_are_counted_independently(tracker):
    first, second = uuid4(), uuid4()
    for _ in range(5):
        await tracker.check_and_reserve(first, UserTier.FREE)

    assert (await tracker.check_and_reserve(second, UserTier.FREE)).allowed is True
    assert (await tracker.check_and_reserve(first, UserTier.FREE)).allowed is False


async def test_upgrade_raises_the_ceiling_within_the_period(tracker):
    user_id = uuid4()
    for _ in range(5):
        await tracker.check_and_reserve(user_id, UserTier.FREE)

    result = await tracker.check_and_reserve(user_id, UserTier.STANDARD)

    assert result.allowed is True
    assert result.used == 6
    assert result.remaining == 14


async def test_downgrade_below_usage_reports_zero_remaining(tracker):
    user_id = uuid4()
    for _ in range(10):
        await tracker.check_and_reserve(user_id, UserTier.STANDARD)

    usage = await tracker.get_usage(user_id, UserTier.FREE)

    assert usage.used == 10
    assert usage.remaining == 0
    assert usage.allowed is False


async def test_counter_resets_at_the_next_utc_month(tracker, clock):
    user_id = uuid4()
    clock.set(datetime(2026, 10, 31, 23, 59, 59, tzinfo=timezone.utc))
    for _ in range(5):
        await tracker.check_and_reserve(user_id, UserTier.FREE)
    exhausted = await tracker.check_and_reserve(user_id, UserTier.FREE)

    assert exhausted.allowed is False
    assert exhausted.period == "2026-10"
    assert exhausted.resets_at == datetime(2026, 11, 1, tzinfo=timezone.utc)

    clock.advance(seconds=1)
    fresh = await tracker.check_and_reserve(user_id, UserTier.FREE)

    assert fresh.allowed is True
    assert fresh.used == 1
    assert fresh.period == "2026-11"


def test_december_rolls_over_into_january(tracker):
    now = datetime(2026, 12, 15, 8, 30, tzinfo=timezone.utc)

    assert tracker.period_key(now) == "2026-12"
    assert tracker.next_reset(now) == datetime(2027, 1, 1, tzinfo=timezone.utc)


def test_period_is_computed_in_utc(tracker):
    # 2026-11-01 00:30 in UTC+02:00 is still October in UTC
    local = datetime(2026, 11, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))

    assert tracker.period_key(local) == "2026-10"


async def test_daily_period(usage_store, clock):
    tracker = UsageTracker(usage_store, clock=clock, period=UsagePeriod.DAILY, limits=dict(LIMITS))
    user_id = uuid4()

    first = await tracker.check_and_reserve(user_id, UserTier.FREE)
    clock.advance(days=1)
    next_day = await tracker.check_and_reserve(user_id, UserTier.FREE)

    assert first.period == "2026-10-18"
    assert first.resets_at == datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert next_day.period == "2026-10-19"
    assert next_day.used == 1


async def test_get_usage_does_not_reserve(tracker):
    user_id = uuid4()

    for _ in range(3):
        usage = await tracker.get_usage(user_id, UserTier.PREMIUM)

    assert usage.used == 0
    assert usage.remaining == 50
    assert usage.allowed is True


async def test_release_returns_a_slot_but_never_goes_negative(tracker):
    user_id = uuid4()
    for _ in range(LIMITS[UserTier.FREE]):
        await tracker.check_and_reserve(user_id, UserTier.FREE)
    period = tracker.period_key(tracker.clock())

    await tracker.release(user_id, period)
    assert (await tracker.check_and_reserve(user_id, UserTier.FREE)).allowed is True

    other = uuid4()
    await tracker.release(other, period)
    assert (await tracker.get_usage(other, UserTier.FREE)).used == 0
