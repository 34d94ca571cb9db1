"""Service catalog router."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.catalog import get_service, list_services, service_to_dict
from services.errors import ServiceNotFound

router = APIRouter()


@router.get("")
async def get_services(
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return [service_to_dict(service) for service in await list_services(db)]


@router.get("/{service_id}")
async def get_service_detail(
    service_id: str,
    _auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    service = await get_service(service_id, db)
    if service is None:
        raise ServiceNotFound()
    return service_to_dict(service)
