"""
Synergy Backend: Notification Schemas
======================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    kind: str = Field(description="Notification kind, e.g. application_accepted")
    content: str
    sender_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Unexpired notifications for the acting user, newest first."""
    notifications: List[NotificationResponse]
    unread_count: int = Field(description="Unread, unexpired notifications in total")
