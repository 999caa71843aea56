"""
Synergy Backend: User Schemas
==============================

What:  Request and response models for /api/users.
Why:   Engagement columns live flat on the users table; the API nests them
       as `current_engagement` so clients never see a half-set engagement.
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from synergy.models.enums import UserRole
from synergy.models.user import User

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserCreate(BaseModel):
    """Body of POST /api/users."""
    name: str = Field(min_length=1, max_length=120)
    username: str = Field(min_length=3, max_length=60, pattern=r"^[A-Za-z0-9_.-]+$")
    email: str = Field(max_length=255)
    user_role: UserRole = Field(default=UserRole.JOBSEEKER)
    headline: str = Field(default="Synergy User", max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.lower()


class EngagementResponse(BaseModel):
    project_id: uuid.UUID
    role_title: str
    join_date: datetime


class PastEngagementResponse(BaseModel):
    project_id: uuid.UUID
    role_title: str
    join_date: datetime
    exit_date: datetime

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """Public profile, including current and past engagements."""
    id: uuid.UUID
    name: str
    username: str
    email: str
    user_role: UserRole
    headline: str
    current_engagement: Optional[EngagementResponse] = None
    past_engagements: List[PastEngagementResponse] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        engagement = None
        if user.is_engaged:
            engagement = EngagementResponse(
                project_id=user.current_project_id,
                role_title=user.current_role_title or "",
                join_date=user.current_join_date,
            )
        return cls(
            id=user.id,
            name=user.name,
            username=user.username,
            email=user.email,
            user_role=user.role,
            headline=user.headline,
            current_engagement=engagement,
            past_engagements=[
                PastEngagementResponse.model_validate(p) for p in user.past_engagements
            ],
            created_at=user.created_at,
        )
