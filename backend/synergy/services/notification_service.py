"""
Synergy Backend: Notification Service
======================================

What:  Persists lifecycle notifications and serves them back to recipients.
How:   DatabaseNotificationSink writes each event in its own short session
       (so a failed insert can never touch the lifecycle transaction that
       produced it). NotificationService reads, marks and deletes rows for
       the acting user only.
Who:   The sink is wired into LifecycleService; NotificationService is
       called by the /api/notifications routes and by app startup (purge).

Retention:
    Rows older than `settings.notification_retention_days` are treated as
    expired: hidden from every query here and deleted by purge_expired().
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from synergy.config import settings
from synergy.exceptions import DatabaseError, NotFoundError
from synergy.models.enums import NotificationKind
from synergy.models.notification import Notification
from synergy.schemas.notification import NotificationListResponse, NotificationResponse
from synergy.services.notification_base import NotificationSink

logger = logging.getLogger(__name__)


class DatabaseNotificationSink(NotificationSink):
    """Stores every emitted event as a `notifications` row."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def emit(
        self,
        recipient_id: uuid.UUID,
        kind: NotificationKind,
        payload: Dict[str, Any],
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                Notification(
                    recipient_id=recipient_id,
                    sender_id=payload.get("sender_id"),
                    kind=NotificationKind(kind).value,
                    content=payload.get("content", ""),
                    project_id=payload.get("project_id"),
                )
            )
            await session.commit()
        logger.debug("Notification %s stored for %s", NotificationKind(kind).value, recipient_id)


class NotificationService:
    """Recipient-scoped reads and updates of stored notifications."""

    def _cutoff(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=settings.notification_retention_days)

    async def list_notifications(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> NotificationListResponse:
        """
        Returns unexpired notifications for `recipient_id`, newest first.

        Query plan:
            SELECT * FROM notifications
            WHERE recipient_id = :uid AND created_at >= :cutoff [AND NOT read]
            ORDER BY created_at DESC LIMIT :limit
            → idx_notifications_recipient_created
        """
        cutoff = self._cutoff()
        try:
            query = select(Notification).where(
                Notification.recipient_id == recipient_id,
                Notification.created_at >= cutoff,
            )
            if unread_only:
                query = query.where(Notification.read.is_(False))
            query = query.order_by(Notification.created_at.desc()).limit(limit)
            rows = list((await db.execute(query)).scalars().all())

            unread_count = (
                await db.execute(
                    select(func.count(Notification.id)).where(
                        Notification.recipient_id == recipient_id,
                        Notification.created_at >= cutoff,
                        Notification.read.is_(False),
                    )
                )
            ).scalar() or 0

            return NotificationListResponse(
                notifications=[NotificationResponse.model_validate(n) for n in rows],
                unread_count=unread_count,
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing notifications: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notifications. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def _get_owned(
        self, db: AsyncSession, notification_id: uuid.UUID, recipient_id: uuid.UUID
    ) -> Notification:
        # Another user's notification is reported as missing, not forbidden
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
                Notification.created_at >= self._cutoff(),
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        return notification

    async def mark_read(
        self, db: AsyncSession, notification_id: uuid.UUID, recipient_id: uuid.UUID
    ) -> NotificationResponse:
        notification = await self._get_owned(db, notification_id, recipient_id)
        notification.read = True
        await db.flush()
        return NotificationResponse.model_validate(notification)

    async def mark_all_read(self, db: AsyncSession, recipient_id: uuid.UUID) -> int:
        """Marks every unread notification of the recipient as read; returns the count."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_notification(
        self, db: AsyncSession, notification_id: uuid.UUID, recipient_id: uuid.UUID
    ) -> None:
        notification = await self._get_owned(db, notification_id, recipient_id)
        await db.delete(notification)
        await db.flush()

    async def purge_expired(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Deletes notifications past the retention window; returns how many."""
        result = await db.execute(
            delete(Notification)
            .where(Notification.created_at < self._cutoff(now))
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0
        if deleted:
            logger.info("Purged %d expired notifications", deleted)
        return deleted


# ── Singleton Instance ────────────────────────────────────────────────────
notification_service = NotificationService()
