"""Subscription plan catalog and user subscription lifecycle."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from models.enums import PlanType, TransactionType
from models.subscription_plan import PlanService, SubscriptionPlan
from models.user_subscription import UserSubscription
from services.clock import Clock, utc_now
from services.credits import add_credits, set_plan_type
from services.entitlements import get_active_subscription
from services.errors import (
    AlreadySubscribed,
    NoActiveSubscription,
    PlanNotFound,
    SubscriptionConflict,
)
from services.paddle import PaddleClient

logger = logging.getLogger(__name__)


def _plan_query():
    return select(SubscriptionPlan).options(
        selectinload(SubscriptionPlan.plan_services).selectinload(PlanService.service)
    )


async def list_plans(db: AsyncSession) -> List[SubscriptionPlan]:
    result = await db.execute(
        _plan_query().where(SubscriptionPlan.is_active.is_(True)).order_by(SubscriptionPlan.price.asc())
    )
    return list(result.scalars().all())


async def get_plan(plan_id: str, db: AsyncSession) -> Optional[SubscriptionPlan]:
    result = await db.execute(_plan_query().where(SubscriptionPlan.id == plan_id))
    return result.scalar_one_or_none()


async def require_plan(plan_id: str, db: AsyncSession) -> SubscriptionPlan:
    plan = await get_plan(plan_id, db)
    if plan is None or not plan.is_active:
        raise PlanNotFound()
    return plan


async def find_subscriptions_by_external_id(
    paddle_subscription_id: str,
    db: AsyncSession,
) -> List[UserSubscription]:
    result = await db.execute(
        select(UserSubscription)
        .options(selectinload(UserSubscription.plan))
        .where(UserSubscription.paddle_subscription_id == paddle_subscription_id)
        .order_by(UserSubscription.created_at.desc())
    )
    return list(result.scalars().all())


async def deactivate_active_subscriptions(
    user_id: str,
    db: AsyncSession,
    *,
    clear_auto_renew: bool = False,
) -> int:
    values: Dict[str, Any] = {"is_active": False}
    if clear_auto_renew:
        values["auto_renew"] = False
    result = await db.execute(
        update(UserSubscription)
        .where(UserSubscription.user_id == user_id, UserSubscription.is_active.is_(True))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


async def _has_held_plan(user_id: str, plan_id: str, db: AsyncSession) -> bool:
    result = await db.execute(
        select(UserSubscription.id)
        .where(UserSubscription.user_id == user_id, UserSubscription.plan_id == plan_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def activate_subscription(
    user_id: str,
    plan: SubscriptionPlan,
    db: AsyncSession,
    *,
    paddle_subscription_id: Optional[str] = None,
    paddle_customer_id: Optional[str] = None,
    clock: Clock = utc_now,
    commit: bool = True,
) -> UserSubscription:
    """Replace the user's active subscription with a new one for ``plan``.

    Deactivation and creation share one transaction; the partial unique index on
    active rows turns a concurrent activation into ``SubscriptionConflict``.
    A zero-price plan grants its credits only the first time the user holds it.
    """
    plan_id, plan_name = plan.id, plan.name
    credits_included = int(plan.credits_included or 0)
    now = clock()
    end_date = None if plan.is_recurring else now + timedelta(days=int(plan.duration_days or 0))
    grant_credits = credits_included > 0
    if grant_credits and int(plan.price or 0) <= 0:
        grant_credits = not await _has_held_plan(user_id, plan_id, db)

    try:
        await deactivate_active_subscriptions(user_id, db)
        subscription = UserSubscription(
            user_id=user_id,
            plan=plan,
            is_active=True,
            auto_renew=bool(plan.is_recurring),
            start_date=now,
            end_date=end_date,
            paddle_subscription_id=paddle_subscription_id,
            paddle_customer_id=paddle_customer_id,
        )
        db.add(subscription)
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("subscription_activation_conflict user=%s plan=%s", user_id, plan_id)
        raise SubscriptionConflict() from exc

    await set_plan_type(user_id, PlanType.SUBSCRIPTION, db)
    if grant_credits:
        await add_credits(
            user_id,
            db,
            amount=credits_included,
            type=TransactionType.SUBSCRIPTION_GRANT,
            description=f"{plan_name} plan credits",
            commit=False,
        )
    if commit:
        await db.commit()

    logger.info(
        "subscription_activated user=%s plan=%s external=%s",
        user_id,
        plan_name,
        paddle_subscription_id,
    )
    return subscription


async def cancel_user_subscriptions(user_id: str, db: AsyncSession, *, commit: bool = True) -> int:
    """Deactivate every active subscription of the user and fall back to the free tier."""
    cancelled = await deactivate_active_subscriptions(user_id, db, clear_auto_renew=True)
    await set_plan_type(user_id, PlanType.FREE, db)
    if commit:
        await db.commit()
    logger.info("subscription_cancelled user=%s rows=%s", user_id, cancelled)
    return cancelled


async def cancel_active_subscription(
    user_id: str,
    db: AsyncSession,
    client: PaddleClient,
    *,
    clock: Clock = utc_now,
) -> Dict[str, Any]:
    """Cancel at Paddle first (when billed there), then locally. Provider failure leaves local state as is."""
    subscription = await get_active_subscription(user_id, db, clock=clock)
    if subscription is None:
        raise NoActiveSubscription()
    if subscription.paddle_subscription_id:
        await client.cancel_subscription(subscription.paddle_subscription_id)
    await cancel_user_subscriptions(user_id, db)
    return {"success": True, "message": "Subscription cancelled successfully"}


async def switch_to_unbilled_plan(
    user_id: str,
    plan: SubscriptionPlan,
    db: AsyncSession,
    client: PaddleClient,
    *,
    clock: Clock = utc_now,
) -> UserSubscription:
    """Move the user onto a zero-price plan, cancelling any provider-billed subscription first."""
    current = await get_active_subscription(user_id, db, clock=clock)
    if current is not None and current.plan_id == plan.id:
        raise AlreadySubscribed()
    if current is not None and current.paddle_subscription_id:
        await client.cancel_subscription(current.paddle_subscription_id)
        logger.info(
            "subscription_provider_cancelled user=%s external=%s",
            user_id,
            current.paddle_subscription_id,
        )
    return await activate_subscription(user_id, plan, db, clock=clock)


async def get_provider_subscription_details(
    user_id: str,
    db: AsyncSession,
    client: PaddleClient,
    *,
    clock: Clock = utc_now,
) -> Any:
    """Provider-side view (next payment, status) of the user's billed subscription."""
    subscription = await get_active_subscription(user_id, db, clock=clock)
    if subscription is None or not subscription.paddle_subscription_id:
        raise NoActiveSubscription()
    return await client.get_subscription(subscription.paddle_subscription_id)


def plan_to_dict(plan: SubscriptionPlan) -> Dict[str, Any]:
    return {
        "id": plan.id,
        "name": plan.name,
        "title": plan.title,
        "description": plan.description,
        "price": int(plan.price or 0),
        "durationDays": int(plan.duration_days or 0),
        "isRecurring": bool(plan.is_recurring),
        "creditsIncluded": int(plan.credits_included or 0),
        "paddlePlanId": plan.paddle_plan_id,
        "isActive": bool(plan.is_active),
        "services": [
            {
                "serviceId": ps.service_id,
                "serviceName": ps.service.name if ps.service else None,
                "usageLimit": int(ps.usage_limit),
                "usagePeriod": ps.usage_period,
            }
            for ps in plan.plan_services
        ],
    }


def subscription_to_dict(subscription: UserSubscription) -> Dict[str, Any]:
    return {
        "id": subscription.id,
        "userId": subscription.user_id,
        "planId": subscription.plan_id,
        "isActive": bool(subscription.is_active),
        "autoRenew": bool(subscription.auto_renew),
        "startDate": subscription.start_date.isoformat() if subscription.start_date else None,
        "endDate": subscription.end_date.isoformat() if subscription.end_date else None,
        "paddleSubscriptionId": subscription.paddle_subscription_id,
        "plan": plan_to_dict(subscription.plan) if subscription.plan is not None else None,
    }
