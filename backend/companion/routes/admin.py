"""
Development data tooling: POST /api/admin/seed and POST /api/admin/clear.

Both require the `x-seed-token` header and are refused in production.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.schemas.admin import ClearResponse, SeedResponse
from companion.schemas.common import ErrorResponse
from companion.services.admin_service import admin_service

router = APIRouter(prefix="/api/admin", tags=["Admin"])

_GUARD_RESPONSES = {
    401: {"description": "Missing or wrong seed token", "model": ErrorResponse},
    403: {"description": "Not allowed in production", "model": ErrorResponse},
}


@router.post("/seed", response_model=SeedResponse, responses=_GUARD_RESPONSES, summary="Seed sample creators")
async def seed(
    x_seed_token: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SeedResponse:
    admin_service.check_seed_access(x_seed_token)
    return await admin_service.seed(db)


@router.post("/clear", response_model=ClearResponse, responses=_GUARD_RESPONSES, summary="Delete all data")
async def clear(
    x_seed_token: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> ClearResponse:
    admin_service.check_seed_access(x_seed_token)
    return await admin_service.clear(db)
