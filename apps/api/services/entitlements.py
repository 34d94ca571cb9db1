"""Plan-based access decisions for (user, service)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from models.enums import UsagePeriod
from models.subscription_plan import UNLIMITED_USAGE, PlanService, SubscriptionPlan
from models.user_subscription import UserSubscription
from services.clock import Clock, utc_now
from services.errors import UsageLimitExceeded
from services.usage_meter import get_current_usage


@dataclass
class AccessCheck:
    has_access: bool
    is_unlimited: bool = False
    limit: int = 0
    usage_period: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "hasAccess": self.has_access,
            "isUnlimited": self.is_unlimited,
            "limit": self.limit,
        }
        if self.usage_period:
            payload["usagePeriod"] = self.usage_period
        return payload


NO_ACCESS = AccessCheck(has_access=False)


async def get_active_subscription(
    user_id: str,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> Optional[UserSubscription]:
    """Most recent active subscription whose end date (if any) is still ahead."""
    result = await db.execute(
        select(UserSubscription)
        .options(
            selectinload(UserSubscription.plan)
            .selectinload(SubscriptionPlan.plan_services)
            .selectinload(PlanService.service)
        )
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.is_active.is_(True),
            or_(UserSubscription.end_date.is_(None), UserSubscription.end_date > clock()),
        )
        .order_by(UserSubscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def check_service_access(
    user_id: str,
    service_id: str,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> AccessCheck:
    subscription = await get_active_subscription(user_id, db, clock=clock)
    if subscription is None:
        return NO_ACCESS

    plan_service = next(
        (ps for ps in subscription.plan.plan_services if ps.service_id == service_id),
        None,
    )
    if plan_service is None:
        return NO_ACCESS

    limit = int(plan_service.usage_limit)
    return AccessCheck(
        has_access=True,
        is_unlimited=limit == UNLIMITED_USAGE,
        limit=limit,
        usage_period=plan_service.usage_period or UsagePeriod.MONTHLY.value,
    )


async def enforce_usage_limit(
    user_id: str,
    service_id: str,
    access: AccessCheck,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> int:
    """Raise ``UsageLimitExceeded`` when the current bucket is full. Returns current usage."""
    if access.is_unlimited:
        return 0
    period = access.usage_period or UsagePeriod.MONTHLY.value
    current = await get_current_usage(user_id, service_id, period, db, clock=clock)
    if current >= access.limit:
        raise UsageLimitExceeded(limit=access.limit, current_usage=current, period=period)
    return current


async def get_usage_overview(
    user_id: str,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> List[Dict[str, Any]]:
    """Usage per service entitled by the user's active plan."""
    subscription = await get_active_subscription(user_id, db, clock=clock)
    if subscription is None:
        return []

    overview: List[Dict[str, Any]] = []
    for plan_service in subscription.plan.plan_services:
        period = plan_service.usage_period or UsagePeriod.MONTHLY.value
        current = await get_current_usage(user_id, plan_service.service_id, period, db, clock=clock)
        unlimited = int(plan_service.usage_limit) == UNLIMITED_USAGE
        overview.append(
            {
                "serviceId": plan_service.service_id,
                "serviceName": plan_service.service.name if plan_service.service else None,
                "currentUsage": current,
                "limit": int(plan_service.usage_limit),
                "period": period,
                "hasAccess": unlimited or current < int(plan_service.usage_limit),
                "isUnlimited": unlimited,
            }
        )
    return overview
