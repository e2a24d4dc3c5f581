import enum
import re
import uuid
from datetime import datetime

from pydantic import BaseModel, Field

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


# --- User ---

class Profile(BaseModel):
    username: str = Field(max_length=100)
    bio: str | None = None
    image: str | None = None


class User(BaseModel):
    id: uuid.UUID
    email: str = Field(max_length=255)
    profile: Profile


class ProfileView(BaseModel):
    profile: Profile
    following: bool
    viewer: uuid.UUID


# --- Article ---

class ArticleContent(BaseModel):
    """Draft shape of an article: everything the author writes."""

    title: str = Field(max_length=300)
    description: str
    body: str
    tags: set[str] = Field(default_factory=set)

    def slug(self) -> str:
        return slugify(self.title)


class ArticleMetadata(BaseModel):
    created_at: datetime
    updated_at: datetime


class Article(BaseModel):
    content: ArticleContent
    slug: str
    author: Profile
    metadata: ArticleMetadata
    favorites_count: int = Field(0, ge=0)


class ArticleView(BaseModel):
    content: ArticleContent
    slug: str
    author: ProfileView
    metadata: ArticleMetadata
    favorited: bool
    favorites_count: int = Field(0, ge=0)
    viewer: uuid.UUID


class ArticleUpdate(BaseModel):
    """Partial update; ``None`` (or unset) fields are left untouched."""

    title: str | None = Field(None, max_length=300)
    description: str | None = None
    body: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ArticleQuery(BaseModel):
    """
    Conjunctive listing filter.

    ``limit`` and ``offset`` are clamped by the articles adapter rather than
    rejected here, so out-of-range values from callers never raise.
    """

    author: str | None = None
    favorited: str | None = None
    tag: str | None = None
    limit: int = 20
    offset: int = 0


# --- Favorites ---

class FavoriteStatus(str, enum.Enum):
    NEW_FAVORITE = "new_favorite"
    ALREADY_FAVORITED = "already_favorited"


class FavoriteOutcome(BaseModel):
    status: FavoriteStatus
    favorites_count: int = Field(ge=0)


class UnfavoriteStatus(str, enum.Enum):
    WAS_FAVORITED = "was_favorited"
    WAS_NOT_FAVORITED = "was_not_favorited"


class UnfavoriteOutcome(BaseModel):
    status: UnfavoriteStatus
    favorites_count: int = Field(ge=0)
