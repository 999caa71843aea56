"""
Synergy Backend: Role-Application Lifecycle Route Handlers
===========================================================

What:  HTTP surface of the lifecycle: apply for a role, decide on an
       application, leave a team, remove a team member.
How:   Each handler resolves the acting user and delegates to
       LifecycleService, which commits before returning.

Status Codes:
    403 capability/ownership, 404 missing project/role/application/member,
    409 for every state conflict (duplicate_application, already_engaged,
    role_unavailable, team_full, invalid_state, concurrent_modification).
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.database import get_db_session
from synergy.models.enums import ApplicationStatus
from synergy.models.user import User
from synergy.routes.deps import get_current_user
from synergy.schemas.common import ErrorResponse, MessageResponse
from synergy.schemas.project import (
    ApplicationResponse,
    ApplicationSubmitResponse,
    ApplyRequest,
    DecisionRequest,
    DecisionResponse,
)
from synergy.services.lifecycle_service import lifecycle_service

router = APIRouter(prefix="/api/projects", tags=["Applications"])

_CONFLICT = {"description": "Conflicts with the current project state", "model": ErrorResponse}


@router.post(
    "/{project_id}/apply",
    response_model=ApplicationSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Only job seekers can apply", "model": ErrorResponse},
        404: {"description": "Project or role not found", "model": ErrorResponse},
        409: _CONFLICT,
    },
    summary="Apply for an open role",
)
async def apply_for_role(
    project_id: UUID,
    data: ApplyRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApplicationSubmitResponse:
    application, resubmitted = await lifecycle_service.submit_application(
        db,
        project_id=project_id,
        user_id=current_user.id,
        role_title=data.role_title,
        message=data.message,
    )
    return ApplicationSubmitResponse(
        message="Application resubmitted successfully" if resubmitted else "Application submitted successfully",
        resubmitted=resubmitted,
        application=ApplicationResponse.model_validate(application),
    )


@router.put(
    "/{project_id}/applications/{application_id}",
    response_model=DecisionResponse,
    responses={
        403: {"description": "Only the founder can decide", "model": ErrorResponse},
        404: {"description": "Project or application not found", "model": ErrorResponse},
        409: _CONFLICT,
    },
    summary="Accept or reject a pending application",
)
async def process_application(
    project_id: UUID,
    application_id: UUID,
    data: DecisionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DecisionResponse:
    new_status = await lifecycle_service.process_application(
        db,
        project_id=project_id,
        application_id=application_id,
        decision=data.status,
        acting_user_id=current_user.id,
    )
    verb = "accepted" if new_status == ApplicationStatus.ACCEPTED else "rejected"
    return DecisionResponse(
        message=f"Application {verb} successfully",
        application_id=application_id,
        status=new_status,
    )


@router.post(
    "/{project_id}/leave",
    response_model=MessageResponse,
    responses={
        403: {"description": "The founder cannot leave", "model": ErrorResponse},
        404: {"description": "Not a member of this project", "model": ErrorResponse},
        409: _CONFLICT,
    },
    summary="Leave a project team",
)
async def leave_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await lifecycle_service.leave_engagement(db, project_id=project_id, user_id=current_user.id)
    return MessageResponse(message="You have left the project")


@router.delete(
    "/{project_id}/members/{member_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Only the founder can remove members", "model": ErrorResponse},
        404: {"description": "Member not found", "model": ErrorResponse},
        409: _CONFLICT,
    },
    summary="Remove a member from the team",
)
async def remove_team_member(
    project_id: UUID,
    member_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await lifecycle_service.remove_member(
        db,
        project_id=project_id,
        member_user_id=member_id,
        acting_user_id=current_user.id,
    )
    return MessageResponse(message="Team member removed")
