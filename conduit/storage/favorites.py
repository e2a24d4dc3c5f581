"""
favorites adapter — membership of (user, article) favorite pairs.

``articles.favorites_count`` is denormalised; every membership change here
adjusts it with a relative UPDATE in the caller's transaction, so the count
and the membership rows commit (or roll back) together.
"""
import logging
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import insert_ignoring_conflicts
from conduit.exceptions import EntityNotFoundError
from conduit.models import Article, Favorite
from conduit.schemas import (
    FavoriteOutcome,
    FavoriteStatus,
    UnfavoriteOutcome,
    UnfavoriteStatus,
)

logger = logging.getLogger(__name__)


async def _favorites_count(db: AsyncSession, slug: str) -> int:
    result = await db.execute(select(Article.favorites_count).where(Article.slug == slug))
    count = result.scalar_one_or_none()
    if count is None:
        raise EntityNotFoundError("Article", slug)
    return count


async def _adjust_count(db: AsyncSession, slug: str, delta: int) -> None:
    await db.execute(
        update(Article)
        .where(Article.slug == slug)
        .values(favorites_count=Article.favorites_count + delta)
        .execution_options(synchronize_session=False)
    )


async def is_favorite(db: AsyncSession, user_id: uuid.UUID, slug: str) -> bool:
    q = select(Favorite.slug).where(Favorite.user_id == user_id, Favorite.slug == slug)
    result = await db.execute(q)
    return result.first() is not None


async def are_favorite(db: AsyncSession, user_id: uuid.UUID, slugs: list[str]) -> dict[str, bool]:
    """
    Return a ``slug -> bool`` mapping covering every slug in *slugs*.

    Issued as a single statement; slugs the user has not favorited (or
    that do not exist) map to False.
    """
    favorited = {slug: False for slug in slugs}
    if not favorited:
        return favorited
    q = select(Favorite.slug).where(
        Favorite.user_id == user_id,
        Favorite.slug.in_(list(favorited)),
    )
    result = await db.execute(q)
    for slug in result.scalars().all():
        favorited[slug] = True
    return favorited


async def favorite(db: AsyncSession, user_id: uuid.UUID, slug: str) -> FavoriteOutcome:
    """
    Add *slug* to *user_id*'s favorites.

    The pair is written with a conflict-tolerant insert, so a concurrent
    favorite of the same pair is reported as ``ALREADY_FAVORITED`` rather
    than failing on the primary key.

    Raises ``EntityNotFoundError`` when the article does not exist.
    """
    await _favorites_count(db, slug)
    result = await db.execute(
        insert_ignoring_conflicts(db, Favorite.__table__, user_id=user_id, slug=slug)
    )
    if result.rowcount == 0:
        logger.debug("Article %r already favorited by %s", slug, user_id)
        return FavoriteOutcome(
            status=FavoriteStatus.ALREADY_FAVORITED,
            favorites_count=await _favorites_count(db, slug),
        )

    await _adjust_count(db, slug, 1)
    return FavoriteOutcome(
        status=FavoriteStatus.NEW_FAVORITE,
        favorites_count=await _favorites_count(db, slug),
    )


async def unfavorite(db: AsyncSession, user_id: uuid.UUID, slug: str) -> UnfavoriteOutcome:
    """
    Remove *slug* from *user_id*'s favorites.

    Raises ``EntityNotFoundError`` when the article does not exist.
    """
    count = await _favorites_count(db, slug)
    result = await db.execute(
        delete(Favorite).where(Favorite.user_id == user_id, Favorite.slug == slug)
    )
    if result.rowcount == 0:
        return UnfavoriteOutcome(status=UnfavoriteStatus.WAS_NOT_FAVORITED, favorites_count=count)

    await _adjust_count(db, slug, -1)
    return UnfavoriteOutcome(
        status=UnfavoriteStatus.WAS_FAVORITED,
        favorites_count=await _favorites_count(db, slug),
    )
