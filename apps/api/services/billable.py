"""Billable action orchestration shared by every content-generation endpoint.

The sequence is fixed: resolve the service, check plan entitlement and the
period quota, check the balance, run the generator, then deduct and meter in a
single commit. Any failure rolls the session back so the ledger is unchanged.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from models.enums import CreditActionType, UsagePeriod
from services.catalog import get_service_by_name
from services.clock import Clock, utc_now
from services.credits import check_credit_availability, deduct_credits
from services.entitlements import check_service_access, enforce_usage_limit
from services.errors import ForbiddenPlan, InsufficientCredits
from services.usage_meter import increment_usage

logger = logging.getLogger(__name__)

ActionResult = Dict[str, Any]
Performer = Callable[[], Union[ActionResult, Awaitable[ActionResult]]]


async def run_billable_action(
    db: AsyncSession,
    user_id: str,
    *,
    service_name: str,
    action: CreditActionType,
    perform: Performer,
    message: str,
    metadata: Optional[Dict[str, Any]] = None,
    clock: Clock = utc_now,
) -> ActionResult:
    try:
        service = await get_service_by_name(service_name, db)

        access = await check_service_access(user_id, service.id, db, clock=clock)
        if not access.has_access:
            raise ForbiddenPlan()
        await enforce_usage_limit(user_id, service.id, access, db, clock=clock)

        cost = int(service.credit_cost or 0)
        if cost > 0:
            availability = await check_credit_availability(user_id, cost, db)
            if not availability["hasEnoughCredits"]:
                raise InsufficientCredits(required=cost, available=availability["availableCredits"])

        result = perform()
        if inspect.isawaitable(result):
            result = await result

        if cost > 0:
            await deduct_credits(
                user_id,
                db,
                service_id=service.id,
                action=action,
                cost=cost,
                result=metadata,
                commit=False,
            )
        await increment_usage(
            user_id,
            service.id,
            access.usage_period or UsagePeriod.MONTHLY.value,
            db,
            clock=clock,
            commit=False,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("billable_action user=%s service=%s action=%s cost=%s", user_id, service_name, action.value, cost)
    return {**result, "creditsUsed": cost, "success": True, "message": message}
