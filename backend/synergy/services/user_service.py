"""
Synergy Backend: User Service
==============================

What:  Account creation and lookup. Engagement fields are never written
       here; only the lifecycle service moves them.
"""

import logging
import uuid

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.exceptions import NotFoundError, ValidationError
from synergy.models.user import User
from synergy.schemas.user import UserCreate

logger = logging.getLogger(__name__)


class UserService:

    async def create_user(self, db: AsyncSession, data: UserCreate) -> User:
        """
        Raises:
            ValidationError: username or email already taken
        """
        result = await db.execute(
            select(User).where(or_(User.username == data.username, User.email == data.email))
        )
        existing = result.scalars().first()
        if existing is not None:
            field = "username" if existing.username == data.username else "email"
            raise ValidationError(message=f"That {field} is already taken", field=field)

        user = User(
            id=uuid.uuid4(),
            name=data.name,
            username=data.username,
            email=data.email,
            user_role=data.user_role.value,
            headline=data.headline,
            past_engagements=[],
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same name
            await db.rollback()
            raise ValidationError(message="That username or email is already taken")

        logger.info("User %s created (role=%s)", user.id, user.user_role)
        return user

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
