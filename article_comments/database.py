import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator

from fastapi import Request
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from article_comments.errors import StoreUnavailableError
from article_comments.middleware import install_query_counter

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


class Base(DeclarativeBase):
    pass


@contextmanager
def backend_errors() -> Iterator[None]:
    """Report an unreachable or broken backend as ``StoreUnavailableError``."""
    try:
        yield
    except _BACKEND_ERRORS as exc:
        logger.error("Comment store unavailable: %s", exc)
        raise StoreUnavailableError() from exc


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for *url* with the per-request query counter
    attached.  Called once by the application lifespan; nothing in this
    module holds a connection at import time.
    """
    engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
    install_query_counter(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Transaction helpers
# ---------------------------------------------------------------------------

def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """
    Run *callback* once the session's transaction has committed.

    Callbacks queued on a transaction that is rolled back are dropped.
    """
    session.info.setdefault("after_commit", []).append(callback)


async def commit_session(session: AsyncSession) -> None:
    """Commit *session*, then run the callbacks queued with ``after_commit``."""
    with backend_errors():
        await session.commit()
    for callback in session.info.pop("after_commit", []):
        await callback()


async def rollback_session(session: AsyncSession) -> None:
    session.info.pop("after_commit", None)
    await session.rollback()


async def get_db(request: Request):
    """
    Yield a session from the factory owned by the running application.

    The request is one transaction: commit when the handler returns,
    roll back on any exception.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await rollback_session(session)
            raise
