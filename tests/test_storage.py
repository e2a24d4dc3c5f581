"""
Storage adapter tests — exercise the four adapters directly on one session,
without the repository's unit-of-work framing.
"""
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.exceptions import EmptySlugError, EntityNotFoundError, SlugAlreadyExistsError
from conduit.models import Article, Favorite, article_tags
from conduit.schemas import (
    ArticleContent,
    ArticleQuery,
    FavoriteStatus,
    UnfavoriteStatus,
)
from conduit.storage import articles, favorites, followers, users


def _draft(title: str, tags: set[str] | None = None) -> ArticleContent:
    return ArticleContent(title=title, description=f"About {title}", body="Body", tags=tags or set())


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_users_find(db_session: AsyncSession, alice):
    row = await users.find(db_session, alice.id)
    assert row.username == "alice"
    assert row.email == "alice@example.com"


@pytest.mark.asyncio
async def test_users_find_missing(db_session: AsyncSession):
    with pytest.raises(EntityNotFoundError):
        await users.find(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_users_find_by_username(db_session: AsyncSession, alice):
    row = await users.find_by_username(db_session, "alice")
    assert row.id == alice.id
    with pytest.raises(EntityNotFoundError):
        await users.find_by_username(db_session, "nobody")


@pytest.mark.asyncio
async def test_users_find_by_usernames_skips_unknown(db_session: AsyncSession, alice, bob):
    rows = await users.find_by_usernames(db_session, ["alice", "bob", "alice", "ghost"])
    assert set(rows) == {"alice", "bob"}
    assert await users.find_by_usernames(db_session, []) == {}


# ---------------------------------------------------------------------------
# followers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_followers_follow_is_idempotent(db_session: AsyncSession, alice, bob):
    assert await followers.is_following(db_session, bob.id, alice.id) is False
    assert await followers.follow(db_session, bob.id, alice.id) is True
    assert await followers.follow(db_session, bob.id, alice.id) is False
    assert await followers.is_following(db_session, bob.id, alice.id) is True
    # Following is directional.
    assert await followers.is_following(db_session, alice.id, bob.id) is False


@pytest.mark.asyncio
async def test_followers_unfollow(db_session: AsyncSession, alice, bob):
    await followers.follow(db_session, bob.id, alice.id)
    assert await followers.unfollow(db_session, bob.id, alice.id) is True
    assert await followers.unfollow(db_session, bob.id, alice.id) is False
    assert await followers.is_following(db_session, bob.id, alice.id) is False


@pytest.mark.asyncio
async def test_followers_following_among(db_session: AsyncSession, alice, bob, viewer):
    await followers.follow(db_session, viewer.id, alice.id)
    followed = await followers.following_among(db_session, viewer.id, [alice.id, bob.id, viewer.id])
    assert followed == {alice.id}
    assert await followers.following_among(db_session, viewer.id, []) == set()


@pytest.mark.asyncio
async def test_followers_self_follow_rejected_by_schema(db_session: AsyncSession, alice):
    assert await followers.is_following(db_session, alice.id, alice.id) is False
    with pytest.raises(IntegrityError):
        await followers.follow(db_session, alice.id, alice.id)


# ---------------------------------------------------------------------------
# articles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_articles_insert(db_session: AsyncSession, alice):
    row = await articles.insert(db_session, _draft("Hello, World", {"intro", "python"}), alice.id)
    assert row.slug == "hello-world"
    assert row.favorites_count == 0
    assert row.created_at == row.updated_at

    found = await articles.find_one(db_session, "hello-world")
    assert found.author.username == "alice"
    assert {t.name for t in found.tags} == {"intro", "python"}


@pytest.mark.asyncio
async def test_articles_insert_reuses_existing_tags(db_session: AsyncSession, alice):
    await articles.insert(db_session, _draft("First", {"shared"}), alice.id)
    await articles.insert(db_session, _draft("Second", {"shared"}), alice.id)
    first = await articles.find_one(db_session, "first")
    second = await articles.find_one(db_session, "second")
    assert first.tags[0].id == second.tags[0].id


@pytest.mark.asyncio
async def test_articles_insert_duplicate_slug(db_session: AsyncSession, alice):
    await articles.insert(db_session, _draft("Same Title"), alice.id)
    with pytest.raises(SlugAlreadyExistsError) as exc_info:
        await articles.insert(db_session, _draft("Same  title!"), alice.id)
    assert exc_info.value.slug == "same-title"


@pytest.mark.asyncio
async def test_articles_insert_rejects_title_without_slug_characters(db_session: AsyncSession, alice):
    with pytest.raises(EmptySlugError) as exc_info:
        await articles.insert(db_session, _draft("!!!"), alice.id)
    assert exc_info.value.title == "!!!"
    result = await db_session.execute(select(Article.slug))
    assert result.all() == []


@pytest.mark.asyncio
async def test_articles_find_one_missing(db_session: AsyncSession):
    with pytest.raises(EntityNotFoundError):
        await articles.find_one(db_session, "does-not-exist")


@pytest.mark.asyncio
async def test_articles_find_orders_newest_first_with_slug_tiebreak(db_session: AsyncSession, alice):
    same_instant = datetime(2024, 1, 1, tzinfo=timezone.utc)
    later = datetime(2024, 6, 1, tzinfo=timezone.utc)
    for slug, created in (("b-post", same_instant), ("a-post", same_instant), ("c-post", later)):
        db_session.add(
            Article(
                slug=slug,
                title=slug,
                description="d",
                body="b",
                favorites_count=0,
                created_at=created,
                updated_at=created,
                author_id=alice.id,
            )
        )
    await db_session.flush()

    rows = await articles.find(db_session, ArticleQuery())
    assert [r.slug for r in rows] == ["c-post", "a-post", "b-post"]


@pytest.mark.asyncio
async def test_articles_find_filters_are_conjunctive(db_session: AsyncSession, alice, bob):
    await articles.insert(db_session, _draft("Alice Python", {"python"}), alice.id)
    await articles.insert(db_session, _draft("Alice Rust", {"rust"}), alice.id)
    await articles.insert(db_session, _draft("Bob Python", {"python"}), bob.id)
    await favorites.favorite(db_session, bob.id, "alice-python")
    await favorites.favorite(db_session, bob.id, "bob-python")

    by_author = await articles.find(db_session, ArticleQuery(author="alice"))
    assert {r.slug for r in by_author} == {"alice-python", "alice-rust"}

    by_tag = await articles.find(db_session, ArticleQuery(tag="python"))
    assert {r.slug for r in by_tag} == {"alice-python", "bob-python"}

    by_fav = await articles.find(db_session, ArticleQuery(favorited="bob"))
    assert {r.slug for r in by_fav} == {"alice-python", "bob-python"}

    combined = await articles.find(db_session, ArticleQuery(author="alice", tag="python", favorited="bob"))
    assert [r.slug for r in combined] == ["alice-python"]

    assert await articles.find(db_session, ArticleQuery(author="nobody")) == []


@pytest.mark.asyncio
async def test_articles_find_clamps_limit_and_offset(db_session: AsyncSession, alice, monkeypatch):
    for i in range(3):
        await articles.insert(db_session, _draft(f"Post {i}"), alice.id)

    assert await articles.find(db_session, ArticleQuery(limit=-5)) == []
    assert len(await articles.find(db_session, ArticleQuery(offset=-3))) == 3
    assert len(await articles.find(db_session, ArticleQuery(limit=1, offset=1))) == 1

    monkeypatch.setattr(settings, "MAX_PAGE_SIZE", 2)
    assert len(await articles.find(db_session, ArticleQuery(limit=1000))) == 2


@pytest.mark.asyncio
async def test_articles_feed(db_session: AsyncSession, alice, bob, viewer):
    await articles.insert(db_session, _draft("From Alice"), alice.id)
    await articles.insert(db_session, _draft("From Bob"), bob.id)
    assert await articles.feed(db_session, viewer.id) == []

    await followers.follow(db_session, viewer.id, alice.id)
    rows = await articles.feed(db_session, viewer.id)
    assert [r.slug for r in rows] == ["from-alice"]


@pytest.mark.asyncio
async def test_articles_update(db_session: AsyncSession, alice):
    row = await articles.insert(db_session, _draft("Original"), alice.id)
    created_at = row.created_at

    await articles.update(db_session, {"body": "Rewritten", "title": "Renamed"}, "original")
    db_session.expire_all()
    updated = await articles.find_one(db_session, "original")
    assert updated.body == "Rewritten"
    assert updated.title == "Renamed"
    assert updated.slug == "original"
    assert updated.description == "About Original"
    assert updated.updated_at >= updated.created_at
    assert updated.created_at.replace(tzinfo=None) == created_at.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_articles_update_missing(db_session: AsyncSession):
    with pytest.raises(EntityNotFoundError):
        await articles.update(db_session, {"body": "x"}, "ghost")


@pytest.mark.asyncio
async def test_articles_delete_removes_dependents(db_session: AsyncSession, alice, bob):
    await articles.insert(db_session, _draft("Doomed", {"tag"}), alice.id)
    await favorites.favorite(db_session, bob.id, "doomed")

    await articles.delete(db_session, "doomed")

    with pytest.raises(EntityNotFoundError):
        await articles.find_one(db_session, "doomed")
    assert (await db_session.execute(select(Favorite).where(Favorite.slug == "doomed"))).first() is None
    tag_links = await db_session.execute(
        select(article_tags).where(article_tags.c.article_slug == "doomed")
    )
    assert tag_links.first() is None
    # Deleting again is a no-op.
    await articles.delete(db_session, "doomed")


# ---------------------------------------------------------------------------
# favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorites_favorite_and_unfavorite(db_session: AsyncSession, alice, bob):
    await articles.insert(db_session, _draft("Liked"), alice.id)

    first = await favorites.favorite(db_session, bob.id, "liked")
    assert first.status is FavoriteStatus.NEW_FAVORITE
    assert first.favorites_count == 1

    again = await favorites.favorite(db_session, bob.id, "liked")
    assert again.status is FavoriteStatus.ALREADY_FAVORITED
    assert again.favorites_count == 1

    second_user = await favorites.favorite(db_session, alice.id, "liked")
    assert second_user.favorites_count == 2

    removed = await favorites.unfavorite(db_session, bob.id, "liked")
    assert removed.status is UnfavoriteStatus.WAS_FAVORITED
    assert removed.favorites_count == 1

    noop = await favorites.unfavorite(db_session, bob.id, "liked")
    assert noop.status is UnfavoriteStatus.WAS_NOT_FAVORITED
    assert noop.favorites_count == 1


@pytest.mark.asyncio
async def test_favorites_missing_article(db_session: AsyncSession, bob):
    with pytest.raises(EntityNotFoundError):
        await favorites.favorite(db_session, bob.id, "ghost")
    with pytest.raises(EntityNotFoundError):
        await favorites.unfavorite(db_session, bob.id, "ghost")


@pytest.mark.asyncio
async def test_favorites_are_favorite_is_total(db_session: AsyncSession, alice, bob):
    await articles.insert(db_session, _draft("One"), alice.id)
    await articles.insert(db_session, _draft("Two"), alice.id)
    await favorites.favorite(db_session, bob.id, "two")

    result = await favorites.are_favorite(db_session, bob.id, ["one", "two", "missing"])
    assert result == {"one": False, "two": True, "missing": False}
    assert await favorites.are_favorite(db_session, bob.id, []) == {}
    assert await favorites.is_favorite(db_session, bob.id, "two") is True
    assert await favorites.is_favorite(db_session, alice.id, "two") is False
