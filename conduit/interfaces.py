"""Abstract repository interfaces (ports)."""

import uuid
from abc import ABC, abstractmethod

from conduit.schemas import (
    Article,
    ArticleContent,
    ArticleQuery,
    ArticleUpdate,
    ArticleView,
    FavoriteOutcome,
    ProfileView,
    UnfavoriteOutcome,
    User,
)


class ArticleRepository(ABC):
    """Port for article persistence and viewer-specific article views."""

    @abstractmethod
    async def publish(self, draft: ArticleContent, author: User) -> Article:
        """
        Persist a new article.  Raises SlugAlreadyExistsError on a slug clash
        and EmptySlugError when the title yields an empty slug.
        """
        ...

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Article:
        """Raises ArticleNotFoundError when no article has *slug*."""
        ...

    @abstractmethod
    async def get_article_view(self, viewer: User, article: Article) -> ArticleView:
        ...

    @abstractmethod
    async def get_articles_views(self, viewer: User, articles: list[Article]) -> list[ArticleView]:
        """Views for *articles*, in input order."""
        ...

    @abstractmethod
    async def find_articles(self, query: ArticleQuery) -> list[Article]:
        ...

    @abstractmethod
    async def feed(self, user: User, limit: int = 20, offset: int = 0) -> list[Article]:
        """Articles written by the users *user* follows, newest first."""
        ...

    @abstractmethod
    async def delete_article(self, article: Article) -> None:
        ...

    @abstractmethod
    async def update_article(self, article: Article, update: ArticleUpdate) -> Article:
        ...

    @abstractmethod
    async def favorite(self, article: Article, user: User) -> FavoriteOutcome:
        ...

    @abstractmethod
    async def unfavorite(self, article: Article, user: User) -> UnfavoriteOutcome:
        ...


class UsersRepository(ABC):
    """Port for user lookups and follow-aware profile views."""

    @abstractmethod
    async def get_by_id(self, user_id: uuid.UUID) -> User:
        """Raises UserNotFoundError when no user has *user_id*."""
        ...

    @abstractmethod
    async def get_view(self, viewer: User, username: str) -> ProfileView:
        ...

    @abstractmethod
    async def follow(self, viewer: User, username: str) -> ProfileView:
        ...

    @abstractmethod
    async def unfollow(self, viewer: User, username: str) -> ProfileView:
        ...
