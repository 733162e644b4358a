"""
Regression tests for known hazards of the comment core.

1. A comment that vanishes between the author check and the write must
   make the write fail, not silently succeed.
2. Edits and deletes are conditioned on the author at the database level.
3. A reply must stay within its parent's article.
4. Backend outages surface as StoreUnavailableError (503).
5. A write whose record cannot be re-read surfaces as PersistFailedError.
6. offset counts pages of the *current* limit, so changing limit between
   calls moves the window by whole pages of the new size.
7. Listing pages are cached and every write invalidates them once it
   has committed.
8. Backend failures outside the store (identity lookup, commit) are
   reported as 503 too.
"""
from fnmatch import fnmatch

import pytest
from httpx import AsyncClient
from sqlalchemy import delete, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from article_comments.cache import cache
from article_comments.database import Base, after_commit, commit_session, rollback_session
from article_comments.errors import (
    NotAuthorError,
    NotFoundError,
    PersistFailedError,
    StoreUnavailableError,
)
from article_comments.main import comment_error_handler
from article_comments.models import Article, Comment, User
from article_comments.schemas import ListingQuery
from article_comments.services import comment_service, listing, user_service
from article_comments.services.comment_store import CommentStore


# ---------------------------------------------------------------------------
# 1. Vanished between check and write
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_of_vanished_comment_fails(db_session: AsyncSession, seed, make_comment):
    comment = await make_comment(seed.alice, seed.article, "soon gone")
    store = CommentStore(db_session)
    checked = await store.find_by_public_id(comment.uuid)

    await db_session.execute(delete(Comment).where(Comment.id == checked.id))

    with pytest.raises(NotFoundError):
        await store.update_content(checked.id, seed.alice.id, "too late")


@pytest.mark.asyncio
async def test_delete_of_vanished_comment_fails(db_session: AsyncSession, seed, make_comment):
    comment = await make_comment(seed.alice, seed.article, "soon gone")
    store = CommentStore(db_session)
    checked = await store.find_by_public_id(comment.uuid)

    await db_session.execute(delete(Comment).where(Comment.id == checked.id))

    with pytest.raises(NotFoundError):
        await store.delete(checked.id, seed.alice.id)


# ---------------------------------------------------------------------------
# 2. Author-conditioned writes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_store_update_with_wrong_author_changes_nothing(db_session: AsyncSession, seed, make_comment):
    comment = await make_comment(seed.alice, seed.article, "original")
    store = CommentStore(db_session)

    with pytest.raises(NotFoundError):
        await store.update_content(comment.id, seed.bob.id, "changed")

    record = await store.find_by_id(comment.id)
    assert record.content == "original"


@pytest.mark.asyncio
async def test_store_delete_with_wrong_author_keeps_row(db_session: AsyncSession, seed, make_comment):
    comment = await make_comment(seed.alice, seed.article)
    store = CommentStore(db_session)

    with pytest.raises(NotFoundError):
        await store.delete(comment.id, seed.bob.id)
    assert await store.find_by_id(comment.id) is not None


@pytest.mark.asyncio
async def test_non_author_rejected_even_with_invalid_content(db_session: AsyncSession, seed, make_comment):
    comment = await make_comment(seed.alice, seed.article)
    store = CommentStore(db_session)
    with pytest.raises(NotAuthorError):
        await comment_service.edit_comment(store, comment.uuid, "", seed.bob.id)


# ---------------------------------------------------------------------------
# 3. Replies stay inside their parent's article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reply_across_articles_is_rejected(async_client: AsyncClient, db_session: AsyncSession, seed, make_comment):
    parent = await make_comment(seed.alice, seed.article, "parent")

    resp = await async_client.post(
        f"/api/v1/comment/{parent.uuid}/article/{seed.other_article.uuid}",
        json={"content": "wrong article"},
        headers={"X-User-Id": seed.bob.uuid},
    )
    assert resp.status_code == 404

    count = (await db_session.execute(select(func.count()).select_from(Comment))).scalar_one()
    assert count == 1


# ---------------------------------------------------------------------------
# 4. Backend outage
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_backend_outage_is_store_unavailable(db_session: AsyncSession, seed, monkeypatch):
    async def _down(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "execute", _down)
    store = CommentStore(db_session)

    with pytest.raises(StoreUnavailableError):
        await store.find_by_public_id("anything")
    with pytest.raises(StoreUnavailableError):
        await comment_service.list_article_comments(store, seed.article.uuid, ListingQuery())


@pytest.mark.asyncio
async def test_store_unavailable_renders_503():
    resp = await comment_error_handler(None, StoreUnavailableError())
    assert resp.status_code == 503
    assert b'"success":false' in resp.body
    assert b'"type":"store_unavailable"' in resp.body


# ---------------------------------------------------------------------------
# 5. Reload after write fails
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_reports_persist_failed_when_reload_misses(db_session: AsyncSession, seed, monkeypatch):
    store = CommentStore(db_session)

    async def _missing(comment_id):
        return None

    monkeypatch.setattr(store, "find_by_id", _missing)
    with pytest.raises(PersistFailedError):
        await comment_service.create_comment(store, seed.article.uuid, "lost", seed.alice.id)


# ---------------------------------------------------------------------------
# 6. Page window follows the current limit
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_changing_limit_moves_window_by_new_page_size(db_session: AsyncSession, seed, make_comment):
    for i in range(10):
        await make_comment(seed.alice, seed.article, f"c{i}")
    store = CommentStore(db_session)

    small = await listing.list_root_comments(store, seed.article.id, ListingQuery(offset=1, limit=3))
    large = await listing.list_root_comments(store, seed.article.id, ListingQuery(offset=1, limit=5))

    assert [r.content for r in small.records] == ["c3", "c4", "c5"]
    assert [r.content for r in large.records] == ["c5", "c6", "c7", "c8", "c9"]


# ---------------------------------------------------------------------------
# 7. Listing cache
# ---------------------------------------------------------------------------

class _FakeRedis:
    """In-process stand-in for the few Redis calls CacheManager makes."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value

    async def scan_iter(self, match):
        for key in list(self.data):
            if fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)


@pytest.mark.asyncio
async def test_listing_is_cached_and_invalidated_by_writes(db_session: AsyncSession, seed, make_comment):
    fake = _FakeRedis()
    cache._redis = fake
    await make_comment(seed.alice, seed.article, "first")
    store = CommentStore(db_session)

    hits_before = cache.stats["hits"]
    first = await comment_service.list_article_comments(store, seed.article.uuid, ListingQuery())
    again = await comment_service.list_article_comments(store, seed.article.uuid, ListingQuery())
    assert again == first
    assert cache.stats["hits"] == hits_before + 1
    assert any(key.startswith(f"comments:article:{seed.article.uuid}:") for key in fake.data)

    await comment_service.create_comment(store, seed.article.uuid, "second", seed.bob.id)
    assert any(key.startswith(f"comments:article:{seed.article.uuid}:") for key in fake.data)

    await commit_session(db_session)
    assert not any(key.startswith(f"comments:article:{seed.article.uuid}:") for key in fake.data)

    fresh = await comment_service.list_article_comments(store, seed.article.uuid, ListingQuery())
    assert [r["content"] for r in fresh["records"]] == ["first", "second"]


@pytest.mark.asyncio
async def test_listing_between_write_and_commit_is_not_left_stale(tmp_path):
    """A page cached by a reader before the writer commits is dropped by the commit."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'comments.db'}")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    cache._redis = _FakeRedis()

    try:
        async with factory() as session:
            carol = User(username="carol", email="carol@example.com")
            session.add(carol)
            await session.flush()
            article = Article(title="Shared", content="Body", user_id=carol.id)
            session.add(article)
            await session.commit()

        async def list_contents() -> list[str]:
            async with factory() as reader:
                page = await comment_service.list_article_comments(
                    CommentStore(reader), article.uuid, ListingQuery()
                )
            return [r["content"] for r in page["records"]]

        async with factory() as writer:
            await comment_service.create_comment(CommentStore(writer), article.uuid, "new", carol.id)
            assert await list_contents() == []
            await commit_session(writer)

        assert await list_contents() == ["new"]
    finally:
        cache._redis = None
        await engine.dispose()


@pytest.mark.asyncio
async def test_rolled_back_write_runs_no_commit_callbacks(db_session: AsyncSession):
    calls = []

    async def _record():
        calls.append("ran")

    after_commit(db_session, _record)
    await rollback_session(db_session)
    await commit_session(db_session)
    assert calls == []


# ---------------------------------------------------------------------------
# 8. Backend failures outside the store
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_identity_lookup_outage_returns_503(async_client: AsyncClient, seed, monkeypatch):
    async def _down(db, user_uuid):
        raise OperationalError("SELECT users.id", {}, Exception("connection refused"))

    monkeypatch.setattr(user_service, "find_user_id", _down)
    resp = await async_client.post(
        f"/api/v1/comment/article/{seed.article.uuid}",
        json={"content": "hello"},
        headers={"X-User-Id": seed.alice.uuid},
    )
    assert resp.status_code == 503
    body = resp.json()
    assert body["success"] is False
    assert body["type"] == "store_unavailable"


@pytest.mark.asyncio
async def test_commit_outage_is_store_unavailable(db_session: AsyncSession, monkeypatch):
    calls = []

    async def _record():
        calls.append("ran")

    async def _down():
        raise OperationalError("COMMIT", {}, Exception("connection reset"))

    after_commit(db_session, _record)
    monkeypatch.setattr(db_session, "commit", _down)
    with pytest.raises(StoreUnavailableError):
        await commit_session(db_session)
    assert calls == []
