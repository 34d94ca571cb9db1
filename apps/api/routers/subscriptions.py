"""Subscriptions router: plan catalog, subscribe, current plan, usage and cancel."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from routers.auth_scope import AuthContext, get_auth_context, get_current_user
from routers.rate_limit import rate_limit
from routers.schemas import CamelModel
from services.clock import Clock, get_clock
from services.entitlements import get_active_subscription, get_usage_overview
from services.paddle import PaddleClient, create_subscription_checkout, get_paddle_client
from services.subscriptions import (
    cancel_active_subscription,
    list_plans,
    plan_to_dict,
    require_plan,
    subscription_to_dict,
    switch_to_unbilled_plan,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class SubscribeRequest(CamelModel):
    plan_id: str


@router.get("/plans")
async def get_plans(db: AsyncSession = Depends(get_db)):
    return [plan_to_dict(plan) for plan in await list_plans(db)]


@router.get("/plans/{plan_id}")
async def get_plan_detail(plan_id: str, db: AsyncSession = Depends(get_db)):
    return plan_to_dict(await require_plan(plan_id, db))


@router.post("/subscribe")
async def subscribe(
    request: SubscribeRequest,
    _rate_limit: None = Depends(rate_limit("subscriptions_subscribe", limit=20, window_seconds=3600)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
    clock: Clock = Depends(get_clock),
):
    """Free plans activate immediately; paid plans return a Paddle checkout link."""
    plan = await require_plan(request.plan_id, db)
    if int(plan.price or 0) > 0:
        checkout = await create_subscription_checkout(user, plan, client)
        return {**checkout, "requiresPayment": True}

    subscription = await switch_to_unbilled_plan(user.id, plan, db, client, clock=clock)
    return {
        "requiresPayment": False,
        "subscription": subscription_to_dict(subscription),
        "message": f"Subscribed to {plan.title or plan.name}",
    }


@router.get("/my-subscription")
async def my_subscription(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    subscription = await get_active_subscription(auth.user_id, db, clock=clock)
    return subscription_to_dict(subscription) if subscription else None


@router.get("/usage")
async def my_usage(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await get_usage_overview(auth.user_id, db, clock=clock)


@router.delete("/cancel")
async def cancel_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
    clock: Clock = Depends(get_clock),
):
    return await cancel_active_subscription(user.id, db, client, clock=clock)
