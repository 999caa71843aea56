"""
Synergy Backend: Notification Route Handlers
=============================================

What:  The acting user's notification inbox. Every handler is scoped to the
       acting user; other users' notifications behave as if absent (404).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.database import get_db_session
from synergy.models.user import User
from synergy.routes.deps import get_current_user
from synergy.schemas.common import ErrorResponse, MessageResponse
from synergy.schemas.notification import NotificationListResponse, NotificationResponse
from synergy.services.notification_service import notification_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="List notifications")
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    return await notification_service.list_notifications(
        db, current_user.id, unread_only=unread_only, limit=limit
    )


@router.put("/read-all", response_model=MessageResponse, summary="Mark all as read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    count = await notification_service.mark_all_read(db, current_user.id)
    return MessageResponse(message=f"{count} notifications marked as read")


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
    summary="Mark one notification as read",
)
async def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    return await notification_service.mark_read(db, notification_id, current_user.id)


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.delete_notification(db, notification_id, current_user.id)
    return MessageResponse(message="Notification deleted")
