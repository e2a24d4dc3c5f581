"""followers adapter — membership of (follower, followed) pairs."""
import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import insert_ignoring_conflicts
from conduit.models import Follower

logger = logging.getLogger(__name__)


async def is_following(db: AsyncSession, follower_id: uuid.UUID, followed_id: uuid.UUID) -> bool:
    if follower_id == followed_id:
        return False
    q = select(Follower.follower_id).where(
        Follower.follower_id == follower_id,
        Follower.followed_id == followed_id,
    )
    result = await db.execute(q)
    return result.first() is not None


async def following_among(
    db: AsyncSession, follower_id: uuid.UUID, followed_ids: list[uuid.UUID]
) -> set[uuid.UUID]:
    """Return the subset of *followed_ids* that *follower_id* follows."""
    candidates = set(followed_ids)
    candidates.discard(follower_id)
    if not candidates:
        return set()
    q = select(Follower.followed_id).where(
        Follower.follower_id == follower_id,
        Follower.followed_id.in_(candidates),
    )
    result = await db.execute(q)
    return set(result.scalars().all())


async def follow(db: AsyncSession, follower_id: uuid.UUID, followed_id: uuid.UUID) -> bool:
    """
    Record that *follower_id* follows *followed_id*.

    Returns True when a new pair was inserted and False when it was already
    present, including when a concurrent transaction wrote it first.
    Callers are expected to reject self-follows beforehand; the table's
    check constraint rejects them regardless.
    """
    result = await db.execute(
        insert_ignoring_conflicts(
            db, Follower.__table__, follower_id=follower_id, followed_id=followed_id
        )
    )
    if result.rowcount == 0:
        logger.debug("Follow %s -> %s already present", follower_id, followed_id)
        return False
    return True


async def unfollow(db: AsyncSession, follower_id: uuid.UUID, followed_id: uuid.UUID) -> bool:
    """Remove the pair; returns True when a row was actually deleted."""
    result = await db.execute(
        delete(Follower).where(
            Follower.follower_id == follower_id,
            Follower.followed_id == followed_id,
        )
    )
    return result.rowcount > 0
