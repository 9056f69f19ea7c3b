"""
Read access to user profiles (the identity subsystem owns writes).
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skportal.core.exceptions import NotFoundError
from skportal.models.user import User


async def find_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await find_user(db, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def get_active_user(db: AsyncSession, user_id: int) -> User:
    """Like get_user, but a deactivated account counts as missing."""
    user = await get_user(db, user_id)
    if not user.is_active:
        raise NotFoundError(f"User {user_id} not found or inactive")
    return user
