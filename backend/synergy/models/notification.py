"""
Synergy Backend: Notification SQLAlchemy Model
===============================================

What:  ORM model for the `notifications` table.
Who:   Written by the database notification sink after lifecycle commits;
       read and updated by NotificationService for the recipient only.

Retention:
    Notifications expire after `settings.notification_retention_days`
    (30 days by default). Expired rows are excluded from listings and
    deleted by `NotificationService.purge_expired` at startup.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from synergy.database import Base


class Notification(Base):
    """A message to one recipient about something that happened to them."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Nullable: system-originated notifications have no sender
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_notifications_recipient_created", "recipient_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, recipient={self.recipient_id}, "
            f"kind='{self.kind}', read={self.read})>"
        )
