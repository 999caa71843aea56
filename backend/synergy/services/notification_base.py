"""
Synergy Backend: Abstract Notification Sink Interface
======================================================

What:  Contract for delivering lifecycle notifications to users.
How:   Concrete sinks inherit from NotificationSink and implement emit().
       The lifecycle service builds NotificationEvent values while it works,
       and hands them to the sink only after its transaction has committed.
Who:   DatabaseNotificationSink in production; a recording sink in tests.

Delivery Semantics:
    Fire-and-forget. A failing sink is logged by the caller and never fails
    or rolls back the operation that produced the event. A retried sweep may
    emit the same event twice; recipients tolerate duplicates.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from synergy.models.enums import NotificationKind


@dataclass(frozen=True)
class NotificationEvent:
    """One message for one recipient, built from committed state."""

    recipient_id: uuid.UUID
    kind: NotificationKind
    content: str
    sender_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    application_id: Optional[uuid.UUID] = None
    role_title: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "sender_id": self.sender_id,
            "project_id": self.project_id,
            "application_id": self.application_id,
            "role_title": self.role_title,
        }


class NotificationSink(ABC):
    """
    Destination for lifecycle notifications.

    Contract:
        - emit() is called once per event, after the producing commit
        - implementations raise on failure; the caller logs and moves on
        - payload always carries "content"; the other keys may be None
    """

    @abstractmethod
    async def emit(
        self,
        recipient_id: uuid.UUID,
        kind: NotificationKind,
        payload: Dict[str, Any],
    ) -> None:
        """Deliver one notification to `recipient_id`."""
        ...
