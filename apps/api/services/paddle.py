"""Paddle vendors API client and checkout creation."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.credit_transaction import CreditTransaction
from models.subscription_plan import SubscriptionPlan
from models.user import User
from services.credits import create_pending_purchase, mark_transaction_failed
from services.errors import PaymentProviderError

logger = logging.getLogger(__name__)


class PaddleClient:
    """Thin async wrapper over the Paddle Classic vendors API."""

    def __init__(
        self,
        *,
        vendor_id: str,
        api_key: str,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.vendor_id = vendor_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _auth_fields(self) -> Dict[str, Any]:
        return {"vendor_id": self.vendor_id, "vendor_auth_code": self.api_key}

    async def _post(self, path: str, payload: Dict[str, Any], *, failure_detail: str) -> Dict[str, Any]:
        body = {**payload, **self._auth_fields()}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=body)
                response.raise_for_status()
                envelope = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Paddle call %s failed: %s", path, exc)
            raise PaymentProviderError(failure_detail) from exc

        if not isinstance(envelope, dict) or not envelope.get("success"):
            error = envelope.get("error") if isinstance(envelope, dict) else None
            logger.error("Paddle call %s returned non-success envelope: %s", path, error)
            raise PaymentProviderError(failure_detail)
        return envelope.get("response") or {}

    async def generate_pay_link(self, payload: Dict[str, Any]) -> str:
        response = await self._post(
            "/2.0/product/generate_pay_link",
            payload,
            failure_detail="Failed to create checkout session",
        )
        url = response.get("url") if isinstance(response, dict) else None
        if not url:
            logger.error("Paddle pay link response carried no url")
            raise PaymentProviderError("Failed to create checkout session")
        return str(url)

    async def cancel_subscription(self, subscription_id: str) -> None:
        await self._post(
            "/2.0/subscription/users_cancel",
            {"subscription_id": subscription_id},
            failure_detail="Failed to cancel subscription",
        )
        logger.info("Cancelled Paddle subscription %s", subscription_id)

    async def get_subscription(self, subscription_id: str) -> Any:
        return await self._post(
            "/2.0/subscription/users",
            {"subscription_id": subscription_id},
            failure_detail="Failed to get subscription details",
        )


def get_paddle_client() -> PaddleClient:
    """FastAPI dependency; tests override it with a mocked transport."""
    return PaddleClient(
        vendor_id=settings.PADDLE_VENDOR_ID,
        api_key=settings.PADDLE_API_KEY,
        base_url=settings.paddle_api_url,
        timeout=settings.PADDLE_TIMEOUT_SECONDS,
    )


def credit_price_usd(credits: int) -> str:
    cents = int(credits) * max(int(settings.CREDIT_PRICE_CENTS), 0)
    return f"{cents / 100:.2f}"


def _validate_credit_quantity(credits: int) -> int:
    quantity = int(credits)
    if quantity <= 0:
        raise HTTPException(status_code=422, detail="Credits must be greater than 0")
    limit = int(settings.MAX_CREDITS_PER_PURCHASE)
    if quantity > limit:
        raise HTTPException(status_code=422, detail=f"Cannot purchase more than {limit:,} credits at once")
    return quantity


async def create_credit_checkout(
    user: User,
    credits: int,
    db: AsyncSession,
    client: PaddleClient,
) -> Dict[str, str]:
    """Persist a PENDING purchase and return a provider pay link for it."""
    quantity = _validate_credit_quantity(credits)
    transaction: CreditTransaction = await create_pending_purchase(user.id, quantity, db)

    payload = {
        "title": f"IdeaFlow Credits - {quantity} credits",
        "webhook_url": f"{settings.BACKEND_URL}/paddle/webhook",
        "prices": [f"USD:{credit_price_usd(quantity)}"],
        "customer_email": user.email,
        "passthrough": json.dumps(
            {
                "type": "credits",
                "userId": user.id,
                "credits": quantity,
                "transactionId": transaction.id,
            }
        ),
        "success_url": f"{settings.FRONTEND_URL}/credits/success",
        "cancel_url": f"{settings.FRONTEND_URL}/credits/cancel",
    }
    try:
        checkout_url = await client.generate_pay_link(payload)
    except PaymentProviderError:
        await mark_transaction_failed(transaction.id, db)
        raise

    transaction.paddle_checkout_id = checkout_url
    await db.commit()
    logger.info("credit_checkout_created user=%s credits=%s transaction=%s", user.id, quantity, transaction.id)
    return {"checkout_url": checkout_url, "transaction_id": transaction.id}


async def create_subscription_checkout(
    user: User,
    plan: SubscriptionPlan,
    client: PaddleClient,
) -> Dict[str, str]:
    if not plan.paddle_plan_id:
        raise HTTPException(status_code=400, detail="Plan not found or not configured for Paddle")

    payload = {
        "product_id": plan.paddle_plan_id,
        "customer_email": user.email,
        "passthrough": json.dumps({"type": "subscription", "userId": user.id, "planId": plan.id}),
        "success_url": f"{settings.FRONTEND_URL}/subscription/success",
        "cancel_url": f"{settings.FRONTEND_URL}/subscription/cancel",
    }
    checkout_url = await client.generate_pay_link(payload)
    logger.info("subscription_checkout_created user=%s plan=%s", user.id, plan.name)
    return {"checkout_url": checkout_url}
