"""Credits router: balance, history and credit purchases."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from routers.auth_scope import get_current_user
from routers.rate_limit import rate_limit
from routers.schemas import CamelModel
from services.credits import (
    check_credit_availability,
    get_credit_history,
    get_transaction,
    get_user_credits,
)
from services.paddle import PaddleClient, create_credit_checkout, get_paddle_client

router = APIRouter()
logger = logging.getLogger(__name__)


class PurchaseCreditsRequest(CamelModel):
    credits: int = Field(ge=1)


@router.get("/balance")
async def credit_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_credits(user.id, db)


@router.get("/check")
async def credit_check(
    required: int = Query(ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payload = await check_credit_availability(user.id, required, db)
    await db.commit()
    return payload


@router.get("/history")
async def credit_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_credit_history(user.id, db)


@router.get("/transactions/{transaction_id}")
async def credit_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Status of one of the caller's transactions, polled after checkout."""
    return await get_transaction(user.id, transaction_id, db)


@router.post("/purchase")
async def purchase_credits(
    request: PurchaseCreditsRequest,
    _rate_limit: None = Depends(rate_limit("credits_purchase", limit=20, window_seconds=3600)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaddleClient = Depends(get_paddle_client),
):
    return await create_credit_checkout(user, request.credits, db, client)
