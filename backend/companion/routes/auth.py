"""
Companion Backend — Auth Routes
=================================

What:  POST /api/auth/register, POST /api/auth/login,
       GET /api/auth/verify-email?token=
How:   Thin handlers over AuthService. Bearer tokens returned here are sent
       back as `Authorization: Bearer <token>` on every protected call.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from companion.database import get_db_session
from companion.schemas.common import ErrorResponse
from companion.schemas.user import (
    EmailVerifiedResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
)
from companion.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """Creates a FAN account, emails a 24h verification link and signs the user in."""
    return await auth_service.register(db, body)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"description": "Wrong email or password", "model": ErrorResponse},
        403: {"description": "Account suspended", "model": ErrorResponse},
    },
    summary="Exchange credentials for a bearer token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.login(db, body)


@router.get(
    "/verify-email",
    response_model=EmailVerifiedResponse,
    responses={400: {"description": "Unknown or expired token", "model": ErrorResponse}},
    summary="Confirm an email address",
)
async def verify_email(
    token: str = Query(default="", description="Token from the verification email"),
    db: AsyncSession = Depends(get_db_session),
) -> EmailVerifiedResponse:
    return await auth_service.verify_email(db, token)
