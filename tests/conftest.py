"""
Test infrastructure for the comments API.

Strategy
--------
- SQLite in-memory via aiosqlite; StaticPool keeps every session on the
  one connection that owns the in-memory database.
- ``get_db`` is overridden so requests use the test session factory; the
  application lifespan (real engine, Redis) never runs under
  ``ASGITransport``.
- Tables are created before and dropped after each test.
- The listing cache is disabled by setting ``cache._redis = None``; the
  CacheManager treats that as a permanent miss, so every listing is read
  from the database.
- ``seed`` provides two users and two articles; ``make_comment`` inserts
  comments directly, for states the API cannot produce (hidden comments,
  vote counts).
"""
from types import SimpleNamespace

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from article_comments.cache import cache
from article_comments.database import Base, commit_session, get_db, rollback_session
from article_comments.main import app
from article_comments.middleware import install_query_counter
from article_comments.models import Article, Comment, User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await rollback_session(session)
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Fresh tables and a disabled cache for every test."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """Users ``alice`` and ``bob``; ``article`` by alice, ``other_article`` by bob."""
    alice = User(username="alice", email="alice@example.com", display_name="Alice", bio="Writes a lot")
    bob = User(username="bob", email="bob@example.com", display_name="Bob", bio="Reads a lot")
    db_session.add_all([alice, bob])
    await db_session.flush()

    article = Article(title="First Article", content="Article body", user_id=alice.id)
    other_article = Article(title="Second Article", content="Other body", user_id=bob.id)
    db_session.add_all([article, other_article])
    await db_session.commit()

    return SimpleNamespace(alice=alice, bob=bob, article=article, other_article=other_article)


@pytest_asyncio.fixture
async def make_comment(db_session: AsyncSession):
    async def _make(author: User, article: Article, content: str = "A comment", **fields) -> Comment:
        comment = Comment(content=content, author_id=author.id, article_id=article.id, **fields)
        db_session.add(comment)
        await db_session.commit()
        return comment

    return _make
