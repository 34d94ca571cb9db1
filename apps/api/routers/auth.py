"""
Authentication router for the current user's profile.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from routers.auth_scope import AuthContext, get_auth_context, get_current_user
from services.clock import Clock, get_clock
from services.users import get_profile

router = APIRouter()


@router.get("/me")
async def read_current_user(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Profile with credit balance and active subscription summary."""
    return await get_profile(user, db, clock=clock)


@router.post("/logout")
async def logout(_auth: AuthContext = Depends(get_auth_context)):
    """Frontend-managed logout acknowledgment endpoint."""
    return {"message": "Logged out successfully"}
