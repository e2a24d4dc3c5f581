"""
users adapter — identity and profile lookups.

Registration is handled elsewhere; this module only reads.
"""
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import EntityNotFoundError
from conduit.models import User


async def find(db: AsyncSession, user_id: uuid.UUID) -> User:
    """Return the user row for *user_id* or raise ``EntityNotFoundError``."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise EntityNotFoundError("User", user_id)
    return user


async def find_by_username(db: AsyncSession, username: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise EntityNotFoundError("User", username)
    return user


async def find_by_usernames(db: AsyncSession, usernames: list[str]) -> dict[str, User]:
    """
    Return a ``username -> row`` mapping for every name in *usernames* that
    exists, in a single query.  Unknown names are simply absent.
    """
    names = set(usernames)
    if not names:
        return {}
    result = await db.execute(select(User).where(User.username.in_(names)))
    return {u.username: u for u in result.scalars().all()}
