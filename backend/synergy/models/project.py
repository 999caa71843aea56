"""
Synergy Backend: Project Aggregate SQLAlchemy Models
=====================================================

What:  ORM models for a project and the three collections it owns:
       open roles, team members and role applications.
How:   One `projects` row plus child rows in `project_roles`,
       `project_members` and `project_applications`. All three collections
       are eager-loaded (selectin) whenever a project is loaded, so the
       role workflow can operate on the in-memory tree without I/O.

Consistency Boundary:
    The project row carries `version`, a SQLAlchemy `version_id_col`.
    Every mutation of the aggregate also touches `updated_at`, so the
    project row is part of every commit and its UPDATE is issued as
        UPDATE projects SET ..., version = :new WHERE id = :id AND version = :old
    A concurrent writer that committed first makes this match zero rows,
    SQLAlchemy raises StaleDataError, and the whole transaction (children
    included) is rolled back.

Table Constraints:
    - project_roles:        UNIQUE (project_id, title)
    - project_members:      UNIQUE (project_id, user_id)
    - project_applications: UNIQUE (project_id, user_id, role_title)
                            WHERE status = 'pending'   (partial index)
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from synergy.database import Base
from synergy.models.enums import ApplicationStatus, ProjectStage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    """
    A startup project: the aggregate root of roles, members and applications.

    Query Patterns:
        - List recent projects: ORDER BY created_at DESC, cursor on created_at
        - Projects of a user: founder_id = :uid OR EXISTS member row
    """

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    stage: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ProjectStage.IDEA.value
    )
    website: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    founder_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_size: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, comment="Maximum team members, founder included"
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    roles: Mapped[List["ProjectRole"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectRole.position",
        lazy="selectin",
    )
    members: Mapped[List["ProjectMember"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectMember.join_date",
        lazy="selectin",
    )
    applications: Mapped[List["ProjectApplication"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectApplication.created_at",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("team_size >= 1", name="ck_projects_team_size"),
        Index("idx_projects_created_at", created_at.desc()),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def available_positions(self) -> int:
        return max(0, self.team_size - len(self.members))

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}', version={self.version})>"


class ProjectRole(Base):
    """An open role: capacity-limited slots with a denormalized filled count."""

    __tablename__ = "project_roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    filled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    project: Mapped[Project] = relationship(back_populates="roles")

    __table_args__ = (
        UniqueConstraint("project_id", "title", name="uq_project_role_title"),
        CheckConstraint("capacity >= 1", name="ck_project_roles_capacity"),
        CheckConstraint(
            "filled_count >= 0 AND filled_count <= capacity",
            name="ck_project_roles_filled",
        ),
    )

    @property
    def is_full(self) -> bool:
        return self.filled_count >= self.capacity


class ProjectMember(Base):
    """Confirmed assignment of a user to a role on the project's team."""

    __tablename__ = "project_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_title: Mapped[str] = mapped_column(String(120), nullable=False)
    join_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    project: Mapped[Project] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member_user"),
    )


class ProjectApplication(Base):
    """
    A user's request to fill a specific role.

    `created_at` is fixed at first submission and orders the collection;
    `applied_date` moves forward when a cancelled application is resubmitted.
    """

    __tablename__ = "project_applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_title: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApplicationStatus.PENDING.value,
        comment="pending, accepted, rejected, cancelled",
    )
    applied_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    project: Mapped[Project] = relationship(back_populates="applications")

    __table_args__ = (
        # Sweep lookup: "which projects hold pending applications by this user"
        Index("idx_project_applications_user_status", "user_id", "status"),
        Index(
            "uq_project_applications_pending",
            "project_id",
            "user_id",
            "role_title",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ApplicationStatus.PENDING.value
