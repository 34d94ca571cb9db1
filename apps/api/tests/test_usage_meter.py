from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.future import select

from models.enums import UsagePeriod
from models.service import Service
from models.service_usage import UserServiceUsage
from services.clock import fixed_clock
from services.usage_meter import get_current_usage, increment_usage, period_key

from conftest import FIXED_NOW


def test_period_keys_for_each_granularity():
    moment = datetime(2026, 3, 5, 8, 30, tzinfo=timezone.utc)
    assert period_key(UsagePeriod.DAILY, moment) == "2026-03-05"
    assert period_key(UsagePeriod.WEEKLY, moment) == "2026-W10"
    assert period_key(UsagePeriod.MONTHLY, moment) == "2026-03"
    assert period_key("MONTHLY", moment) == "2026-03"


def test_weekly_key_uses_iso_week_year_at_year_boundaries():
    # 2021-01-01 is a Friday in ISO week 53 of 2020.
    assert period_key(UsagePeriod.WEEKLY, datetime(2021, 1, 1, tzinfo=timezone.utc)) == "2020-W53"
    # 2024-12-30 is a Monday in ISO week 1 of 2025.
    assert period_key(UsagePeriod.WEEKLY, datetime(2024, 12, 30, tzinfo=timezone.utc)) == "2025-W1"


def test_daily_key_rolls_over_at_utc_midnight():
    before = datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc)
    after = before + timedelta(seconds=1)
    assert period_key(UsagePeriod.DAILY, before) == "2026-03-31"
    assert period_key(UsagePeriod.DAILY, after) == "2026-04-01"
    assert period_key(UsagePeriod.MONTHLY, after) == "2026-04"


def test_naive_timestamps_are_treated_as_utc():
    assert period_key(UsagePeriod.DAILY, datetime(2026, 7, 4, 23, 0)) == "2026-07-04"


@pytest.mark.asyncio
async def test_increment_upserts_one_row_per_bucket(session_maker, make_user):
    await make_user("meter-user")
    clock = fixed_clock(FIXED_NOW)

    async with session_maker() as session:
        service = (await session.execute(select(Service).where(Service.name == "hook_generator_ai"))).scalar_one()
        assert await get_current_usage("meter-user", service.id, UsagePeriod.MONTHLY, session, clock=clock) == 0

        await increment_usage("meter-user", service.id, UsagePeriod.MONTHLY, session, clock=clock)
        await increment_usage("meter-user", service.id, UsagePeriod.MONTHLY, session, clock=clock)
        assert await get_current_usage("meter-user", service.id, UsagePeriod.MONTHLY, session, clock=clock) == 2

        rows = (
            await session.execute(select(UserServiceUsage).where(UserServiceUsage.user_id == "meter-user"))
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].period == "2026-03"
        assert rows[0].usage_count == 2


@pytest.mark.asyncio
async def test_new_bucket_starts_fresh_and_keeps_history(session_maker, make_user):
    await make_user("rollover-user")
    today = fixed_clock(datetime(2026, 3, 31, 23, 59, tzinfo=timezone.utc))
    tomorrow = fixed_clock(datetime(2026, 4, 1, 0, 1, tzinfo=timezone.utc))

    async with session_maker() as session:
        service = (await session.execute(select(Service).where(Service.name == "hook_generator_ai"))).scalar_one()
        await increment_usage("rollover-user", service.id, UsagePeriod.DAILY, session, clock=today)

        assert await get_current_usage("rollover-user", service.id, UsagePeriod.DAILY, session, clock=tomorrow) == 0
        await increment_usage("rollover-user", service.id, UsagePeriod.DAILY, session, clock=tomorrow)

        assert await get_current_usage("rollover-user", service.id, UsagePeriod.DAILY, session, clock=today) == 1
        assert await get_current_usage("rollover-user", service.id, UsagePeriod.DAILY, session, clock=tomorrow) == 1

        periods = (
            await session.execute(
                select(UserServiceUsage.period).where(UserServiceUsage.user_id == "rollover-user")
            )
        ).scalars().all()
        assert sorted(periods) == ["2026-03-31", "2026-04-01"]


@pytest.mark.asyncio
async def test_daily_and_monthly_counters_are_separate_buckets(session_maker, make_user):
    await make_user("kinds-user")
    clock = fixed_clock(FIXED_NOW)

    async with session_maker() as session:
        service = (await session.execute(select(Service).where(Service.name == "hook_generator_ai"))).scalar_one()
        await increment_usage("kinds-user", service.id, UsagePeriod.DAILY, session, clock=clock)

        assert await get_current_usage("kinds-user", service.id, UsagePeriod.DAILY, session, clock=clock) == 1
        assert await get_current_usage("kinds-user", service.id, UsagePeriod.MONTHLY, session, clock=clock) == 0
