"""
Repository — the single façade over the storage adapters.

Design notes
------------
- ``Repository`` implements both ``ArticleRepository`` and
  ``UsersRepository``; callers depend on whichever port they need.
- It only borrows a session factory.  Every public method is one unit of
  work: one session, one transaction, released on every exit path.  View
  assembly helpers take the already-open session so a composite read
  never spans two transactions.
- Rows never leave this module: the ``_*_from_row`` functions convert ORM
  rows into the pydantic domain entities of ``conduit.schemas``.
- Adapter ``EntityNotFoundError`` is translated into the operation's own
  not-found error here; SQLAlchemy failures become ``DatabaseError`` in
  ``unit_of_work``.
"""
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conduit import models
from conduit.database import unit_of_work
from conduit.exceptions import (
    ArticleNotFoundError,
    DatabaseError,
    EntityNotFoundError,
    SelfFollowError,
    UserNotFoundError,
)
from conduit.interfaces import ArticleRepository, UsersRepository
from conduit.schemas import (
    Article,
    ArticleContent,
    ArticleMetadata,
    ArticleQuery,
    ArticleUpdate,
    ArticleView,
    FavoriteOutcome,
    Profile,
    ProfileView,
    UnfavoriteOutcome,
    User,
)
from conduit.storage import articles, favorites, followers, users

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row -> entity mapping
# ---------------------------------------------------------------------------

def _profile_from_row(row: models.User) -> Profile:
    return Profile(username=row.username, bio=row.bio, image=row.image)


def _user_from_row(row: models.User) -> User:
    return User(id=row.id, email=row.email, profile=_profile_from_row(row))


def _article_from_row(row: models.Article) -> Article:
    if row.author is None:
        raise DatabaseError(f"Article {row.slug!r} references a missing author")
    return Article(
        content=ArticleContent(
            title=row.title,
            description=row.description,
            body=row.body,
            tags={t.name for t in row.tags},
        ),
        slug=row.slug,
        author=_profile_from_row(row.author),
        metadata=ArticleMetadata(created_at=row.created_at, updated_at=row.updated_at),
        favorites_count=row.favorites_count,
    )


def _article_view(article: Article, author: ProfileView, favorited: bool, viewer: User) -> ArticleView:
    return ArticleView(
        content=article.content,
        slug=article.slug,
        author=author,
        metadata=article.metadata,
        favorited=favorited,
        favorites_count=article.favorites_count,
        viewer=viewer.id,
    )


class Repository(ArticleRepository, UsersRepository):
    """SQLAlchemy-backed implementation of both repository ports."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    def _unit_of_work(self):
        return unit_of_work(self._session_factory)

    # ------------------------------------------------------------------
    # Session-scoped helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _find_user(db: AsyncSession, username: str) -> models.User:
        try:
            return await users.find_by_username(db, username)
        except EntityNotFoundError as exc:
            raise UserNotFoundError(username) from exc

    async def _profile_view(self, db: AsyncSession, viewer: User, username: str) -> ProfileView:
        row = await self._find_user(db, username)
        following = row.id != viewer.id and await followers.is_following(db, viewer.id, row.id)
        return ProfileView(profile=_profile_from_row(row), following=following, viewer=viewer.id)

    async def _profile_views(
        self, db: AsyncSession, viewer: User, usernames: list[str]
    ) -> dict[str, ProfileView]:
        """
        Follow-aware views for every existing name in *usernames*, in two
        statements regardless of how many names are requested.
        """
        rows = await users.find_by_usernames(db, usernames)
        followed = await followers.following_among(db, viewer.id, [r.id for r in rows.values()])
        return {
            name: ProfileView(
                profile=_profile_from_row(row),
                following=row.id in followed,
                viewer=viewer.id,
            )
            for name, row in rows.items()
        }

    # ------------------------------------------------------------------
    # ArticleRepository
    # ------------------------------------------------------------------

    async def publish(self, draft: ArticleContent, author: User) -> Article:
        async with self._unit_of_work() as db:
            row = await articles.insert(db, draft, author.id)
            metadata = ArticleMetadata(created_at=row.created_at, updated_at=row.updated_at)
            slug = row.slug

        logger.info("Published article %r by %s", slug, author.profile.username)
        return Article(
            content=draft,
            slug=slug,
            author=author.profile,
            metadata=metadata,
            favorites_count=0,
        )

    async def get_by_slug(self, slug: str) -> Article:
        async with self._unit_of_work() as db:
            try:
                row = await articles.find_one(db, slug)
            except EntityNotFoundError as exc:
                raise ArticleNotFoundError(slug) from exc
            return _article_from_row(row)

    async def get_article_view(self, viewer: User, article: Article) -> ArticleView:
        async with self._unit_of_work() as db:
            try:
                author_view = await self._profile_view(db, viewer, article.author.username)
            except UserNotFoundError as exc:
                logger.warning("Article %r has no author row %r", article.slug, article.author.username)
                raise DatabaseError(
                    f"Article {article.slug!r} references missing author {article.author.username!r}"
                ) from exc
            favorited = await favorites.is_favorite(db, viewer.id, article.slug)

        return _article_view(article, author_view, favorited, viewer)

    async def get_articles_views(self, viewer: User, articles: list[Article]) -> list[ArticleView]:
        if not articles:
            return []

        async with self._unit_of_work() as db:
            favorited = await favorites.are_favorite(db, viewer.id, [a.slug for a in articles])
            author_views = await self._profile_views(
                db, viewer, [a.author.username for a in articles]
            )
        logger.debug("Assembled %d article view(s) for %s", len(articles), viewer.id)

        views: list[ArticleView] = []
        for article in articles:
            author_view = author_views.get(article.author.username)
            if author_view is None:
                logger.warning("Article %r has no author row %r", article.slug, article.author.username)
                raise DatabaseError(
                    f"Article {article.slug!r} references missing author {article.author.username!r}"
                )
            views.append(_article_view(article, author_view, favorited[article.slug], viewer))
        return views

    async def find_articles(self, query: ArticleQuery) -> list[Article]:
        async with self._unit_of_work() as db:
            rows = await articles.find(db, query)
            return [_article_from_row(r) for r in rows]

    async def feed(self, user: User, limit: int = 20, offset: int = 0) -> list[Article]:
        async with self._unit_of_work() as db:
            rows = await articles.feed(db, user.id, limit, offset)
            return [_article_from_row(r) for r in rows]

    async def delete_article(self, article: Article) -> None:
        async with self._unit_of_work() as db:
            await articles.delete(db, article.slug)

    async def update_article(self, article: Article, update: ArticleUpdate) -> Article:
        """
        Apply *update* and return the article as persisted.

        The slug is immutable once published: a new title does not move the
        article to a new slug.
        """
        async with self._unit_of_work() as db:
            try:
                await articles.update(db, update.changes(), article.slug)
                row = await articles.find_one(db, article.slug)
            except EntityNotFoundError as exc:
                raise ArticleNotFoundError(article.slug) from exc
            return _article_from_row(row)

    async def favorite(self, article: Article, user: User) -> FavoriteOutcome:
        async with self._unit_of_work() as db:
            try:
                return await favorites.favorite(db, user.id, article.slug)
            except EntityNotFoundError as exc:
                raise ArticleNotFoundError(article.slug) from exc

    async def unfavorite(self, article: Article, user: User) -> UnfavoriteOutcome:
        async with self._unit_of_work() as db:
            try:
                return await favorites.unfavorite(db, user.id, article.slug)
            except EntityNotFoundError as exc:
                raise ArticleNotFoundError(article.slug) from exc

    # ------------------------------------------------------------------
    # UsersRepository
    # ------------------------------------------------------------------

    async def get_by_id(self, user_id: uuid.UUID) -> User:
        async with self._unit_of_work() as db:
            try:
                row = await users.find(db, user_id)
            except EntityNotFoundError as exc:
                raise UserNotFoundError(user_id) from exc
            return _user_from_row(row)

    async def get_view(self, viewer: User, username: str) -> ProfileView:
        async with self._unit_of_work() as db:
            return await self._profile_view(db, viewer, username)

    async def follow(self, viewer: User, username: str) -> ProfileView:
        async with self._unit_of_work() as db:
            target = await self._find_user(db, username)
            if target.id == viewer.id:
                raise SelfFollowError(username)
            if await followers.follow(db, viewer.id, target.id):
                logger.info("%s now follows %s", viewer.profile.username, username)
            return ProfileView(profile=_profile_from_row(target), following=True, viewer=viewer.id)

    async def unfollow(self, viewer: User, username: str) -> ProfileView:
        async with self._unit_of_work() as db:
            target = await self._find_user(db, username)
            if await followers.unfollow(db, viewer.id, target.id):
                logger.info("%s unfollowed %s", viewer.profile.username, username)
            return ProfileView(profile=_profile_from_row(target), following=False, viewer=viewer.id)
