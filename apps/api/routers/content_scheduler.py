"""Content scheduler router."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.enums import ContentStatus
from models.user import User
from routers.auth_scope import get_current_user
from routers.schemas import CamelModel
from services.clock import Clock, get_clock
from services.scheduler import (
    delete_scheduled_content,
    list_scheduled_content,
    schedule_content,
    update_scheduled_content,
)

router = APIRouter()


class ScheduleContentRequest(CamelModel):
    content: str = Field(min_length=1)
    platform: str = Field(pattern="^(facebook|twitter|instagram|linkedin|tiktok|youtube)$")
    scheduled_at: datetime
    title: Optional[str] = None
    hashtags: Optional[List[str]] = None


class UpdateScheduledContentRequest(CamelModel):
    content: Optional[str] = None
    platform: Optional[str] = Field(default=None, pattern="^(facebook|twitter|instagram|linkedin|tiktok|youtube)$")
    scheduled_at: Optional[datetime] = None
    title: Optional[str] = None
    hashtags: Optional[List[str]] = None
    status: Optional[ContentStatus] = None


@router.post("/schedule")
async def schedule(
    request: ScheduleContentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await schedule_content(
        user.id,
        db,
        content=request.content,
        platform=request.platform,
        scheduled_at=request.scheduled_at,
        title=request.title,
        hashtags=request.hashtags,
        clock=clock,
    )


@router.get("/scheduled")
async def list_scheduled(
    platform: Optional[str] = Query(default=None),
    status: Optional[ContentStatus] = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await list_scheduled_content(
        user.id,
        db,
        platform=platform,
        status=status.value if status else None,
        clock=clock,
    )


@router.put("/scheduled/{content_id}")
async def update_scheduled(
    content_id: str,
    request: UpdateScheduledContentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    changes = request.model_dump(exclude_unset=True)
    if changes.get("status") is not None:
        changes["status"] = ContentStatus(changes["status"]).value
    return await update_scheduled_content(user.id, content_id, db, changes=changes, clock=clock)


@router.delete("/scheduled/{content_id}")
async def delete_scheduled(
    content_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await delete_scheduled_content(user.id, content_id, db, clock=clock)
