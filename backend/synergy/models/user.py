"""
Synergy Backend: User SQLAlchemy Models
========================================

What:  ORM models for the `users` and `past_engagements` tables.
Who:   Created by UserService; engagement columns are written only by the
       lifecycle service (accept / leave / remove), never by profile updates.

Engagement Model:
    A user has at most one current engagement, stored inline on the user row
    as three nullable columns (project, role title, join date) that are set
    and cleared together. Closing an engagement appends a PastEngagement row;
    past engagements are never edited or deleted.

    `version` is an optimistic-concurrency counter: two acceptances of the
    same user racing in different projects cannot both commit, and neither
    can a submission that read the engagement before an acceptance changed
    it (the submission touches the row, see touch()).
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import flag_modified

from synergy.database import Base
from synergy.models.enums import UserRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A platform account with a capability class and engagement history."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    username: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    user_role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.JOBSEEKER.value,
        comment="Capability class: founder, investor, jobseeker",
    )
    headline: Mapped[str] = mapped_column(String(255), nullable=False, default="Synergy User")

    # ── Current Engagement ────────────────────────────────────────────────
    # No foreign key: the engagement survives as history if the project row
    # is deleted, same as past_engagements.project_id.
    current_project_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    current_role_title: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    current_join_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    past_engagements: Mapped[List["PastEngagement"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="PastEngagement.exit_date",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def role(self) -> UserRole:
        return UserRole(self.user_role)

    @property
    def is_engaged(self) -> bool:
        return self.current_project_id is not None

    def touch(self, now: datetime) -> None:
        """
        Marks the row dirty so its versioned UPDATE is part of the flush.

        Used when a decision was made on the engagement columns without
        changing them: a concurrent acceptance then fails the version check.
        """
        self.updated_at = now
        flag_modified(self, "updated_at")

    def start_engagement(self, project_id: uuid.UUID, role_title: str, now: datetime) -> None:
        self.current_project_id = project_id
        self.current_role_title = role_title
        self.current_join_date = now

    def close_engagement(self, now: datetime) -> Optional["PastEngagement"]:
        """
        Move the current engagement into history.

        Returns the appended PastEngagement, or None when the user had no
        current engagement (closing twice is a no-op).
        """
        if self.current_project_id is None:
            return None
        record = PastEngagement(
            project_id=self.current_project_id,
            role_title=self.current_role_title or "",
            join_date=self.current_join_date or now,
            exit_date=now,
        )
        self.past_engagements.append(record)
        self.current_project_id = None
        self.current_role_title = None
        self.current_join_date = None
        return record

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.user_role}')>"


class PastEngagement(Base):
    """A closed engagement: which project, which role, from when to when."""

    __tablename__ = "past_engagements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    role_title: Mapped[str] = mapped_column(String(120), nullable=False)
    join_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    exit_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    user: Mapped[User] = relationship(back_populates="past_engagements")
