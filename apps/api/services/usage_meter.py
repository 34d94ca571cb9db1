"""Period-bucketed usage counters per (user, service)."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import dialect_insert
from models.enums import UsagePeriod
from models.service_usage import UserServiceUsage
from services.clock import Clock, as_utc, utc_now


def period_key(period: UsagePeriod | str, now: Optional[datetime] = None) -> str:
    """Bucket key for ``period`` at ``now``.

    DAILY -> ``YYYY-MM-DD``, WEEKLY -> ``YYYY-W<iso week>`` (ISO week-year),
    MONTHLY -> ``YYYY-MM``.
    """
    current = as_utc(now) or utc_now()
    kind = UsagePeriod(period)
    if kind is UsagePeriod.DAILY:
        return current.strftime("%Y-%m-%d")
    if kind is UsagePeriod.WEEKLY:
        iso_year, iso_week, _ = current.isocalendar()
        return f"{iso_year}-W{iso_week}"
    return current.strftime("%Y-%m")


async def get_current_usage(
    user_id: str,
    service_id: str,
    period: UsagePeriod | str,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> int:
    kind = UsagePeriod(period)
    result = await db.execute(
        select(UserServiceUsage.usage_count).where(
            UserServiceUsage.user_id == user_id,
            UserServiceUsage.service_id == service_id,
            UserServiceUsage.period == period_key(kind, clock()),
            UserServiceUsage.usage_period == kind.value,
        )
    )
    return int(result.scalar() or 0)


async def increment_usage(
    user_id: str,
    service_id: str,
    period: UsagePeriod | str,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
    commit: bool = True,
) -> None:
    """Add one use to the current bucket via a native ``ON CONFLICT`` upsert."""
    kind = UsagePeriod(period)
    insert = dialect_insert(db)
    stmt = insert(UserServiceUsage).values(
        id=str(uuid.uuid4()),
        user_id=user_id,
        service_id=service_id,
        period=period_key(kind, clock()),
        usage_period=kind.value,
        usage_count=1,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "service_id", "period", "usage_period"],
        set_={
            "usage_count": UserServiceUsage.usage_count + 1,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    if commit:
        await db.commit()
