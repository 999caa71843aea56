"""
Synergy Backend: Project Service
=================================

What:  Creation and retrieval of projects (the lifecycle transitions, and
       edits and deletion that touch the team, live in lifecycle_service).
Who:   Called by routes/projects.py.

Creation Rules:
    - Only users of the founder capability class may create projects.
    - Open role titles must be unique within the project (case-insensitive)
      and may not be "Founder", which is reserved for the founder's own
      membership row.
    - The founder becomes the first team member and counts toward
      team_size. Creating a project does not give the founder an engagement.

Listing:
    Cursor-based pagination on created_at, newest first by default, with
    optional category / stage / free-text filters.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.exceptions import DatabaseError, ForbiddenError, NotFoundError
from synergy.models.enums import FOUNDER_ROLE_TITLE
from synergy.models.project import Project, ProjectMember, ProjectRole
from synergy.models.user import User
from synergy.schemas.project import (
    ProjectCreate,
    ProjectListItem,
    ProjectListResponse,
    ProjectResponse,
)
from synergy.services.role_workflow import check_role_titles

logger = logging.getLogger(__name__)

SORT_OPTIONS = {"latest", "oldest"}


class ProjectService:
    """Project CRUD outside the role-application lifecycle."""

    async def create_project(
        self, db: AsyncSession, founder: User, data: ProjectCreate
    ) -> ProjectResponse:
        """
        Creates a project with its open roles and the founder's membership.

        Raises:
            ForbiddenError: creator is not a founder
            ValidationError: duplicate or reserved role title
        """
        if not founder.role.can_found_projects:
            raise ForbiddenError(message="Only founders can create projects")

        check_role_titles(data.open_roles)

        now = datetime.now(timezone.utc)
        project = Project(
            id=uuid.uuid4(),
            name=data.name,
            description=data.description,
            category=data.category.value,
            stage=data.stage.value,
            website=data.website,
            founder_id=founder.id,
            team_size=data.team_size,
            created_at=now,
            updated_at=now,
            roles=[
                ProjectRole(
                    position=index,
                    title=role.title,
                    description=role.description,
                    capacity=role.capacity,
                    filled_count=0,
                )
                for index, role in enumerate(data.open_roles)
            ],
            members=[
                ProjectMember(user_id=founder.id, role_title=FOUNDER_ROLE_TITLE, join_date=now)
            ],
            applications=[],
        )
        try:
            db.add(project)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating project: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the project. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "Project %s created by %s with %d open roles",
            project.id,
            founder.id,
            len(project.roles),
        )
        return ProjectResponse.from_project(project, viewer_id=founder.id)

    async def get_project(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        viewer_id: Optional[uuid.UUID] = None,
    ) -> ProjectResponse:
        """
        Query plan:
            SELECT * FROM projects WHERE id = :uuid  (PK lookup)
            + one SELECT ... WHERE project_id IN (...) per child collection
        """
        result = await db.execute(select(Project).where(Project.id == project_id))
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError(resource="project", resource_id=str(project_id))
        return ProjectResponse.from_project(project, viewer_id=viewer_id)

    async def list_projects(
        self,
        db: AsyncSession,
        limit: int = 10,
        cursor: Optional[str] = None,
        category: Optional[str] = None,
        stage: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "latest",
    ) -> ProjectListResponse:
        """
        Lists projects with cursor-based pagination.

        How:
            - sort=latest: created_at DESC, next page WHERE created_at < :cursor
            - sort=oldest: created_at ASC,  next page WHERE created_at > :cursor
            - limit + 1 rows are fetched so has_more needs no extra query
            - an unparseable cursor is ignored (first page)
        """
        filters = []
        if category:
            filters.append(Project.category == category)
        if stage:
            filters.append(Project.stage == stage)
        if search:
            pattern = f"%{search}%"
            filters.append(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))

        try:
            query = select(Project).where(*filters)

            if cursor:
                try:
                    cursor_dt = datetime.fromisoformat(cursor)
                except ValueError:
                    cursor_dt = None
                if cursor_dt:
                    if sort == "oldest":
                        query = query.where(Project.created_at > cursor_dt)
                    else:
                        query = query.where(Project.created_at < cursor_dt)

            if sort == "oldest":
                query = query.order_by(asc(Project.created_at))
            else:
                query = query.order_by(desc(Project.created_at))
            query = query.limit(limit + 1)

            projects: List[Project] = list((await db.execute(query)).scalars().all())
            total_count = (
                await db.execute(select(func.count(Project.id)).where(*filters))
            ).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing projects: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve projects. Please try again.",
                context={"error_type": type(e).__name__},
            )

        has_more = len(projects) > limit
        if has_more:
            projects = projects[:limit]
        next_cursor = projects[-1].created_at.isoformat() if has_more and projects else None

        return ProjectListResponse(
            projects=[ProjectListItem.from_project(p) for p in projects],
            total_count=total_count,
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def list_user_projects(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> List[ProjectListItem]:
        """Projects the user founded or is a team member of, newest first."""
        membership = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        result = await db.execute(
            select(Project)
            .where(or_(Project.founder_id == user_id, Project.id.in_(membership)))
            .order_by(desc(Project.created_at))
        )
        return [ProjectListItem.from_project(p) for p in result.scalars().all()]


# ── Singleton Instance ────────────────────────────────────────────────────
project_service = ProjectService()
