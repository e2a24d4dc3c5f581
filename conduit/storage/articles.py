"""
articles adapter — CRUD and filtered listing of article rows.

Design notes
------------
- ``author`` is eager-loaded with ``joinedload`` (many-to-one) and ``tags``
  with ``selectinload`` (many-to-many), so a listing costs a fixed number
  of statements regardless of page size.  ``unique()`` is required after
  any ``joinedload`` query.
- Timestamps are taken once per write from the application clock and
  applied to every column that changes, which keeps
  ``created_at <= updated_at`` without relying on dialect-specific
  ``now()`` resolution.
- Adapter functions flush but never commit; the transaction boundary is
  owned by ``unit_of_work`` in the repository.
"""
import logging
import re
import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import asc, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.config import settings
from conduit.database import insert_ignoring_conflicts
from conduit.exceptions import EmptySlugError, EntityNotFoundError, SlugAlreadyExistsError
from conduit.models import Article, Favorite, Follower, Tag, User, article_tags
from conduit.schemas import ArticleContent, ArticleQuery

logger = logging.getLogger(__name__)

# Matches the unique-violation messages of SQLite and PostgreSQL for the
# articles primary key.
_SLUG_CONFLICT_RE = re.compile(r"articles\.slug|articles_pkey")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clamp_page(limit: int, offset: int) -> tuple[int, int]:
    """Clamp *limit* to ``[0, MAX_PAGE_SIZE]`` and *offset* to ``>= 0``."""
    return max(0, min(limit, settings.MAX_PAGE_SIZE)), max(0, offset)


def _with_relations(q):
    return q.options(joinedload(Article.author), selectinload(Article.tags))


def _newest_first(q):
    return q.order_by(desc(Article.created_at), asc(Article.slug))


# ---------------------------------------------------------------------------
# Tag resolution helper (used by insert)
# ---------------------------------------------------------------------------

async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag rows for each name in *tag_names*, creating any that do not
    yet exist.  A tag created concurrently by another transaction is
    picked up rather than inserted twice.
    """
    tags: list[Tag] = []
    for name in tag_names:
        await db.execute(insert_ignoring_conflicts(db, Tag.__table__, name=name))
        result = await db.execute(select(Tag).where(Tag.name == name))
        tags.append(result.scalar_one())
    return tags


# ---------------------------------------------------------------------------
# Public adapter functions
# ---------------------------------------------------------------------------

async def insert(db: AsyncSession, draft: ArticleContent, author_id: uuid.UUID) -> Article:
    """
    Insert a new article row for *draft* written by *author_id*.

    The slug is ``draft.slug()``.  Raises ``EmptySlugError`` when the title
    has no characters a slug can keep, and ``SlugAlreadyExistsError`` when
    the slug is already taken, whether that is seen by the existence check
    or by the primary key on flush (a concurrent publish of the same title).
    """
    slug = draft.slug()
    if not slug:
        raise EmptySlugError(draft.title)
    existing = await db.execute(select(Article.slug).where(Article.slug == slug))
    if existing.first() is not None:
        raise SlugAlreadyExistsError(slug)

    now = _now()
    article = Article(
        slug=slug,
        title=draft.title,
        description=draft.description,
        body=draft.body,
        favorites_count=0,
        created_at=now,
        updated_at=now,
        author_id=author_id,
    )
    if draft.tags:
        article.tags.extend(await _resolve_tags(db, sorted(draft.tags)))

    db.add(article)
    try:
        await db.flush()
    except IntegrityError as exc:
        if _SLUG_CONFLICT_RE.search(str(exc.orig)):
            raise SlugAlreadyExistsError(slug) from exc
        raise
    return article


async def find_one(db: AsyncSession, slug: str) -> Article:
    """Return the article row with author and tags loaded, or raise ``EntityNotFoundError``."""
    q = _with_relations(select(Article).where(Article.slug == slug))
    result = await db.execute(q)
    article = result.unique().scalar_one_or_none()
    if article is None:
        raise EntityNotFoundError("Article", slug)
    return article


async def find(db: AsyncSession, query: ArticleQuery) -> list[Article]:
    """
    Return the article rows matching every filter set on *query*, newest
    first with the slug as tiebreak.
    """
    limit, offset = _clamp_page(query.limit, query.offset)

    q = select(Article)
    if query.author is not None:
        q = q.where(Article.author_id.in_(select(User.id).where(User.username == query.author)))
    if query.favorited is not None:
        favorited_slugs = (
            select(Favorite.slug)
            .join(User, User.id == Favorite.user_id)
            .where(User.username == query.favorited)
        )
        q = q.where(Article.slug.in_(favorited_slugs))
    if query.tag is not None:
        tagged_slugs = (
            select(article_tags.c.article_slug)
            .join(Tag, Tag.id == article_tags.c.tag_id)
            .where(Tag.name == query.tag)
        )
        q = q.where(Article.slug.in_(tagged_slugs))

    q = _newest_first(_with_relations(q)).offset(offset).limit(limit)
    result = await db.execute(q)
    return list(result.unique().scalars().all())


async def feed(
    db: AsyncSession,
    follower_id: uuid.UUID,
    limit: int = 20,
    offset: int = 0,
) -> list[Article]:
    """Return article rows authored by users that *follower_id* follows."""
    limit, offset = _clamp_page(limit, offset)
    followed = select(Follower.followed_id).where(Follower.follower_id == follower_id)
    q = _with_relations(select(Article).where(Article.author_id.in_(followed)))
    q = _newest_first(q).offset(offset).limit(limit)
    result = await db.execute(q)
    return list(result.unique().scalars().all())


async def update(db: AsyncSession, patch: dict, slug: str) -> None:
    """
    Apply *patch* (column -> value) to the article and refresh
    ``updated_at``.  The slug itself is never rewritten.
    """
    result = await db.execute(
        sa.update(Article)
        .where(Article.slug == slug)
        .values(**patch, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise EntityNotFoundError("Article", slug)


async def delete(db: AsyncSession, slug: str) -> None:
    """
    Delete the article together with its favorites and tag associations.

    The dependent rows are removed explicitly so the cascade does not hinge
    on the backend enforcing ``ON DELETE CASCADE``.  Deleting an unknown
    slug is a no-op.
    """
    await db.execute(sa.delete(Favorite).where(Favorite.slug == slug))
    await db.execute(sa.delete(article_tags).where(article_tags.c.article_slug == slug))
    result = await db.execute(sa.delete(Article).where(Article.slug == slug))
    if result.rowcount:
        logger.info("Deleted article %r", slug)
