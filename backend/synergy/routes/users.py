"""
Synergy Backend: User Route Handlers
=====================================
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.database import get_db_session
from synergy.models.user import User
from synergy.routes.deps import get_current_user
from synergy.schemas.common import ErrorResponse
from synergy.schemas.user import UserCreate, UserResponse
from synergy.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Username or email taken", "model": ErrorResponse}},
    summary="Create a user account",
)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.create_user(db, data)
    return UserResponse.from_user(user)


@router.get(
    "/me",
    response_model=UserResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Profile of the acting user",
)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Public profile with current and past engagements",
)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.get_user(db, user_id)
    return UserResponse.from_user(user)
