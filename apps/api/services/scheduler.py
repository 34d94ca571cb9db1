"""Content scheduler: queue posts per platform, gated by the content_scheduler plan entitlement."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.enums import ContentStatus, CreditActionType
from models.scheduled_content import ScheduledContent
from services.billable import run_billable_action
from services.catalog import CONTENT_SCHEDULER, get_service_by_name
from services.clock import Clock, as_utc, utc_now
from services.entitlements import check_service_access
from services.errors import ForbiddenPlan, InvalidSchedule, ScheduledContentNotFound

logger = logging.getLogger(__name__)


def _validate_future(scheduled_at: datetime, clock: Clock) -> datetime:
    moment = as_utc(scheduled_at)
    if moment <= clock():
        raise InvalidSchedule()
    return moment


def content_to_dict(row: ScheduledContent) -> Dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "content": row.content,
        "platform": row.platform,
        "hashtags": list(row.hashtags_json or []),
        "scheduledAt": as_utc(row.scheduled_at).isoformat(),
        "status": row.status,
        "createdAt": as_utc(row.created_at).isoformat() if row.created_at else None,
    }


async def _require_access(user_id: str, db: AsyncSession, clock: Clock) -> None:
    service = await get_service_by_name(CONTENT_SCHEDULER, db)
    access = await check_service_access(user_id, service.id, db, clock=clock)
    if not access.has_access:
        raise ForbiddenPlan()


async def schedule_content(
    user_id: str,
    db: AsyncSession,
    *,
    content: str,
    platform: str,
    scheduled_at: datetime,
    title: Optional[str] = None,
    hashtags: Optional[List[str]] = None,
    clock: Clock = utc_now,
) -> Dict[str, Any]:
    """Persist a scheduled post as a free billable action (entitlement and quota still apply)."""

    async def _create() -> Dict[str, Any]:
        moment = _validate_future(scheduled_at, clock)
        row = ScheduledContent(
            user_id=user_id,
            title=title,
            content=content,
            platform=platform,
            hashtags_json=list(hashtags or []),
            scheduled_at=moment,
            status=ContentStatus.SCHEDULED.value,
        )
        db.add(row)
        await db.flush()
        await db.refresh(row)
        return content_to_dict(row)

    result = await run_billable_action(
        db,
        user_id,
        service_name=CONTENT_SCHEDULER,
        action=CreditActionType.SCHEDULE_CONTENT,
        perform=_create,
        message="Content scheduled successfully",
        clock=clock,
    )
    logger.info("content_scheduled user=%s id=%s platform=%s", user_id, result["id"], platform)
    return result


async def list_scheduled_content(
    user_id: str,
    db: AsyncSession,
    *,
    platform: Optional[str] = None,
    status: Optional[str] = None,
    clock: Clock = utc_now,
) -> List[Dict[str, Any]]:
    await _require_access(user_id, db, clock)
    query = select(ScheduledContent).where(ScheduledContent.user_id == user_id)
    if platform:
        query = query.where(ScheduledContent.platform == platform)
    if status:
        query = query.where(ScheduledContent.status == status)
    result = await db.execute(query.order_by(ScheduledContent.scheduled_at.asc()))
    return [content_to_dict(row) for row in result.scalars().all()]


async def _owned_row(user_id: str, content_id: str, db: AsyncSession) -> ScheduledContent:
    result = await db.execute(
        select(ScheduledContent).where(
            ScheduledContent.id == content_id,
            ScheduledContent.user_id == user_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise ScheduledContentNotFound()
    return row


async def update_scheduled_content(
    user_id: str,
    content_id: str,
    db: AsyncSession,
    *,
    changes: Dict[str, Any],
    clock: Clock = utc_now,
) -> Dict[str, Any]:
    await _require_access(user_id, db, clock)
    row = await _owned_row(user_id, content_id, db)

    if changes.get("scheduled_at") is not None:
        row.scheduled_at = _validate_future(changes["scheduled_at"], clock)
    if changes.get("content"):
        row.content = changes["content"]
    if changes.get("platform"):
        row.platform = changes["platform"]
    if "title" in changes:
        row.title = changes["title"]
    if changes.get("hashtags") is not None:
        row.hashtags_json = list(changes["hashtags"])
    if changes.get("status"):
        row.status = ContentStatus(changes["status"]).value

    payload = content_to_dict(row)
    await db.commit()
    logger.info("scheduled_content_updated user=%s id=%s", user_id, content_id)
    return {**payload, "success": True, "message": "Content updated successfully"}


async def delete_scheduled_content(
    user_id: str,
    content_id: str,
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> Dict[str, Any]:
    await _require_access(user_id, db, clock)
    row = await _owned_row(user_id, content_id, db)
    await db.delete(row)
    await db.commit()
    logger.info("scheduled_content_deleted user=%s id=%s", user_id, content_id)
    return {"success": True, "message": "Content deleted successfully"}
