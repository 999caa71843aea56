"""
Synergy Backend: Route Dependencies
====================================

What:  Resolves the acting user from the X-User-ID header.
Why:   Session and token handling sit in front of this service; by the time
       a request arrives here the caller's identity is an already trusted
       user id. These dependencies turn it into a loaded User row.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from synergy.database import get_db_session
from synergy.exceptions import AuthenticationError
from synergy.models.user import User


async def _resolve(db: AsyncSession, raw: str) -> User:
    try:
        user_id = uuid.UUID(raw)
    except ValueError:
        raise AuthenticationError(message="Malformed X-User-ID header")
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError(message="Unknown user")
    return user


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Acting user; 401 when the header is missing or names no user."""
    if not x_user_id:
        raise AuthenticationError()
    return await _resolve(db, x_user_id)


async def get_optional_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Like get_current_user, but anonymous requests get None."""
    if not x_user_id:
        return None
    return await _resolve(db, x_user_id)
