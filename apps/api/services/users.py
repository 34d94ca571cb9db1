"""User rows created on first authenticated access and the profile view."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import dialect_insert
from models.user import User
from services.clock import Clock, utc_now
from services.credits import account_to_dict, get_or_create_account
from services.entitlements import get_active_subscription
from services.subscriptions import subscription_to_dict

logger = logging.getLogger(__name__)


def placeholder_email(user_id: str) -> str:
    return f"{user_id}@users.ideaflow.invalid"


async def ensure_user(
    user_id: str,
    db: AsyncSession,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    insert = dialect_insert(db)
    await db.execute(
        insert(User)
        .values(id=user_id, email=email or placeholder_email(user_id), name=name)
        .on_conflict_do_nothing()
    )
    await db.commit()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning("user_provision_conflict user=%s email=%s", user_id, email)
        raise HTTPException(status_code=409, detail="Email is already registered to another account.")
    logger.info("user_created user=%s", user_id)
    return user


async def get_profile(user: User, db: AsyncSession, *, clock: Clock = utc_now) -> Dict[str, Any]:
    account = await get_or_create_account(user.id, db)
    await db.commit()
    subscription = await get_active_subscription(user.id, db, clock=clock)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "credits": account_to_dict(account),
        "subscription": subscription_to_dict(subscription) if subscription else None,
    }
