"""Paddle router: webhook intake and provider checkout endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import require_paddle_public_key
from database import get_db
from models.user import User
from routers.auth_scope import get_current_user
from routers.credits import PurchaseCreditsRequest
from routers.rate_limit import rate_limit
from routers.schemas import CamelModel
from services.clock import Clock, get_clock
from services.errors import WebhookPayloadInvalid, WebhookSignatureInvalid
from services.paddle import (
    PaddleClient,
    create_credit_checkout,
    create_subscription_checkout,
    get_paddle_client,
)
from services.subscriptions import (
    cancel_active_subscription,
    get_provider_subscription_details,
    require_plan,
)
from services.webhooks import apply_event, verify_signature

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateSubscriptionRequest(CamelModel):
    plan_id: str


def get_paddle_public_key() -> str:
    try:
        return require_paddle_public_key()
    except ValueError as exc:
        logger.error("Rejecting Paddle webhook: %s", exc)
        raise WebhookSignatureInvalid() from exc


async def _read_webhook_fields(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = json.loads(await request.body() or b"{}")
        except ValueError as exc:
            raise WebhookPayloadInvalid() from exc
        if not isinstance(payload, dict):
            raise WebhookPayloadInvalid()
        return payload
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post("/webhook")
async def paddle_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    public_key: str = Depends(get_paddle_public_key),
):
    logger.info("Received Paddle webhook")
    fields = await _read_webhook_fields(request)
    try:
        verify_signature(fields, public_key)
    except WebhookSignatureInvalid:
        logger.warning("Invalid Paddle webhook signature for %s", fields.get("alert_name"))
        raise
    outcome = await apply_event(fields, db, clock=clock)
    return {"success": True, "outcome": outcome}


@router.post("/credits/purchase")
async def purchase_credits(
    body: PurchaseCreditsRequest,
    _rate_limit: None = Depends(rate_limit("paddle_credits_purchase", limit=20, window_seconds=3600)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
):
    return await create_credit_checkout(user, body.credits, db, client)


@router.post("/subscription/create")
async def create_subscription(
    body: CreateSubscriptionRequest,
    _rate_limit: None = Depends(rate_limit("paddle_subscription_create", limit=20, window_seconds=3600)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
):
    plan = await require_plan(body.plan_id, db)
    return await create_subscription_checkout(user, plan, client)


@router.post("/subscription/cancel")
async def cancel_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
    clock: Clock = Depends(get_clock),
):
    return await cancel_active_subscription(user.id, db, client, clock=clock)


@router.get("/subscription/details")
async def subscription_details(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
    clock: Clock = Depends(get_clock),
):
    return await get_provider_subscription_details(user.id, db, client, clock=clock)
