"""
Synergy Backend: Project and Application Schemas
=================================================

What:  Request/response models for /api/projects (create, edit, delete) and
       the lifecycle endpoints (apply, decide, leave, remove).
How:   Responses are built from loaded ORM objects with `from_attributes`;
       the project's application list is only exposed to its founder.

Design Decision:
    Role titles are compared exactly (case and spacing included) once they
    are stored, so the create schema strips surrounding whitespace up front.
    "Founder" is reserved for the founder's own membership and is rejected
    by ProjectService, not here, because it is a business rule.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from synergy.models.enums import (
    ApplicationDecision,
    ApplicationStatus,
    ProjectCategory,
    ProjectStage,
)
from synergy.models.project import Project


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RoleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    capacity: int = Field(default=1, ge=1, le=100)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Role title cannot be blank")
        return v


class ProjectCreate(BaseModel):
    """
    Body of POST /api/projects.

    team_size counts the founder, so a project with team_size=1 can never
    accept an applicant.
    """
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    category: ProjectCategory
    stage: ProjectStage = Field(default=ProjectStage.IDEA)
    website: str = Field(default="", max_length=255)
    team_size: int = Field(default=1, ge=1, le=100)
    open_roles: List[RoleCreate] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    """
    Body of PUT /api/projects/{id}.

    Omitted (or null) fields are left unchanged. `open_roles`, when given,
    replaces the whole role list; roles keep their members by exact title.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    category: Optional[ProjectCategory] = None
    stage: Optional[ProjectStage] = None
    website: Optional[str] = Field(default=None, max_length=255)
    team_size: Optional[int] = Field(default=None, ge=1, le=100)
    open_roles: Optional[List[RoleCreate]] = None

    def details(self) -> dict:
        """Plain column values of the descriptive fields that were sent."""
        return self.model_dump(
            mode="json", exclude_none=True, exclude={"team_size", "open_roles"}
        )


class ApplyRequest(BaseModel):
    """Body of POST /api/projects/{id}/apply."""
    role_title: str = Field(min_length=1, max_length=120)
    message: str = Field(default="", max_length=2000)


class DecisionRequest(BaseModel):
    """Body of PUT /api/projects/{id}/applications/{application_id}."""
    status: ApplicationDecision = Field(description="accepted or rejected")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RoleResponse(BaseModel):
    title: str
    description: str
    capacity: int
    filled_count: int

    model_config = {"from_attributes": True}


class MemberResponse(BaseModel):
    user_id: uuid.UUID
    role_title: str
    join_date: datetime

    model_config = {"from_attributes": True}


class ApplicationResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user_id: uuid.UUID
    role_title: str
    message: str
    status: ApplicationStatus
    applied_date: datetime
    decided_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectResponse(BaseModel):
    """Full project view. `applications` is null unless the viewer is the founder."""
    id: uuid.UUID
    name: str
    description: str
    category: str
    stage: str
    website: str
    founder_id: uuid.UUID
    team_size: int
    available_positions: int
    open_roles: List[RoleResponse]
    team_members: List[MemberResponse]
    applications: Optional[List[ApplicationResponse]] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(
        cls, project: Project, viewer_id: Optional[uuid.UUID] = None
    ) -> "ProjectResponse":
        applications = None
        if viewer_id is not None and viewer_id == project.founder_id:
            applications = [ApplicationResponse.model_validate(a) for a in project.applications]
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            category=project.category,
            stage=project.stage,
            website=project.website,
            founder_id=project.founder_id,
            team_size=project.team_size,
            available_positions=project.available_positions,
            open_roles=[RoleResponse.model_validate(r) for r in project.roles],
            team_members=[MemberResponse.model_validate(m) for m in project.members],
            applications=applications,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectListItem(BaseModel):
    """Compact card for project listings."""
    id: uuid.UUID
    name: str
    description: str
    category: str
    stage: str
    founder_id: uuid.UUID
    team_size: int
    member_count: int
    open_roles: List[RoleResponse]
    created_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectListItem":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description[:200],
            category=project.category,
            stage=project.stage,
            founder_id=project.founder_id,
            team_size=project.team_size,
            member_count=len(project.members),
            open_roles=[RoleResponse.model_validate(r) for r in project.roles],
            created_at=project.created_at,
        )


class ProjectListResponse(BaseModel):
    """
    Paginated project listing.

    next_cursor is the created_at of the last item (ISO 8601); send it back
    as `cursor` to fetch the next page.
    """
    projects: List[ProjectListItem]
    total_count: int
    next_cursor: Optional[str] = None
    has_more: bool


class ApplicationSubmitResponse(BaseModel):
    message: str
    resubmitted: bool = Field(description="True when a cancelled application was reopened")
    application: ApplicationResponse


class DecisionResponse(BaseModel):
    message: str
    application_id: uuid.UUID
    status: ApplicationStatus
