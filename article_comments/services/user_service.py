"""
User service: resolves the caller's identity.

Users are created and authenticated elsewhere; this service only turns
the public UUID handed over by the authentication layer into the
internal id that comments record as their author.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from article_comments.models import User


async def find_user_id(db: AsyncSession, user_uuid: str) -> int | None:
    """Return the internal id of the user with *user_uuid*, or None."""
    result = await db.execute(select(User.id).where(User.uuid == user_uuid))
    return result.scalar_one_or_none()
