"""
Synergy Backend: Project Route Handlers
========================================

What:  Project creation, listing, detail, founder edits and deletion.
       Lifecycle transitions on a project (apply, decide, leave, remove)
       are in applications.py.

Visibility:
    Everyone can read projects; the application list inside a project is
    only returned to its founder.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.config import settings
from synergy.database import get_db_session
from synergy.models.enums import ProjectCategory, ProjectStage
from synergy.models.user import User
from synergy.routes.deps import get_current_user, get_optional_user
from synergy.schemas.common import ErrorResponse, MessageResponse
from synergy.schemas.project import (
    ProjectCreate,
    ProjectListItem,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)
from synergy.services.lifecycle_service import lifecycle_service
from synergy.services.project_service import project_service

router = APIRouter(prefix="/api/projects", tags=["Projects"])


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Duplicate or reserved role title", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Only founders can create projects", "model": ErrorResponse},
    },
    summary="Create a project",
)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    return await project_service.create_project(db, current_user, data)


@router.get(
    "",
    response_model=ProjectListResponse,
    summary="List projects with cursor pagination",
)
async def list_projects(
    response: Response,
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    cursor: Optional[str] = Query(
        default=None,
        description="created_at of the last item of the previous page (ISO 8601)",
    ),
    category: Optional[ProjectCategory] = Query(default=None),
    stage: Optional[ProjectStage] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    sort: str = Query(default="latest", pattern="^(latest|oldest)$"),
    db: AsyncSession = Depends(get_db_session),
) -> ProjectListResponse:
    result = await project_service.list_projects(
        db=db,
        limit=limit,
        cursor=cursor,
        category=category.value if category else None,
        stage=stage.value if stage else None,
        search=search,
        sort=sort,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/user/{user_id}",
    response_model=List[ProjectListItem],
    summary="Projects a user founded or is a member of",
)
async def list_user_projects(
    user_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> List[ProjectListItem]:
    return await project_service.list_user_projects(db, user_id)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    responses={404: {"description": "Project not found", "model": ErrorResponse}},
    summary="Project detail",
)
async def get_project(
    project_id: UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    return await project_service.get_project(
        db, project_id, viewer_id=viewer.id if viewer else None
    )


@router.put(
    "/{project_id}",
    response_model=ProjectResponse,
    responses={
        400: {"description": "Duplicate or reserved role title", "model": ErrorResponse},
        403: {"description": "Only the founder can edit the project", "model": ErrorResponse},
        404: {"description": "Project not found", "model": ErrorResponse},
        409: {"description": "Edit does not fit the current team", "model": ErrorResponse},
    },
    summary="Edit a project",
)
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    project = await lifecycle_service.update_project(db, project_id, current_user.id, data)
    return ProjectResponse.from_project(project, viewer_id=current_user.id)


@router.delete(
    "/{project_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Only the founder can delete the project", "model": ErrorResponse},
        404: {"description": "Project not found", "model": ErrorResponse},
        409: {"description": "Project changed concurrently", "model": ErrorResponse},
    },
    summary="Delete a project",
)
async def delete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await lifecycle_service.delete_project(db, project_id, current_user.id)
    return MessageResponse(message="Project deleted successfully")
