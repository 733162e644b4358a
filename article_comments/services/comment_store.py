"""
Comment store: persistence for comment records.

Design notes
------------
- One ``CommentStore`` wraps one ``AsyncSession``.  It is built per
  request by ``dependencies.get_comment_store``; the engine and session
  factory belong to the application lifespan, never to this module.
- Relationships on ``Comment`` are ``lazy="noload"``.  Every read asks
  for the author and the article with ``joinedload`` and converts the
  row into a ``CommentRecord`` whose author/article are summary dicts,
  so nothing downstream can wander into a relationship.
- ``populate_existing`` is set on reads: a record re-fetched after a
  write must reflect the row, not the session's identity map.
- Edits and deletes are single statements conditioned on both the
  comment id and its author id.  Zero affected rows means the comment
  vanished (or changed hands) after the caller checked it, and the
  operation fails with ``NotFoundError``.
- The store flushes but does not commit; ``get_db`` owns the
  transaction.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.sql import Select

from article_comments.database import backend_errors
from article_comments.errors import NotFoundError, PersistFailedError
from article_comments.models import Article, Comment, User, utcnow


@dataclass(frozen=True)
class CommentRecord:
    """A comment row with its author and article already projected."""

    id: int
    uuid: str
    content: str
    hidden: bool
    vote_count: int
    created_at: datetime
    updated_at: datetime
    author_id: int
    article_id: int
    reply_id: int | None
    author: dict | None
    article: dict | None


# ---------------------------------------------------------------------------
# Summary projections
# ---------------------------------------------------------------------------

def _user_summary(user: User | None) -> dict | None:
    """Author without internal id, email or profile fields."""
    if user is None:
        return None
    return {
        "uuid": user.uuid,
        "username": user.username,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _article_summary(article: Article | None) -> dict | None:
    """Article without internal id or author back-reference."""
    if article is None:
        return None
    return {
        "uuid": article.uuid,
        "title": article.title,
        "content": article.content,
        "hidden": article.hidden,
        "vote_count": article.vote_count,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "updated_at": article.updated_at.isoformat() if article.updated_at else None,
    }


def _to_record(comment: Comment) -> CommentRecord:
    return CommentRecord(
        id=comment.id,
        uuid=comment.uuid,
        content=comment.content,
        hidden=comment.hidden,
        vote_count=comment.vote_count,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        author_id=comment.author_id,
        article_id=comment.article_id,
        reply_id=comment.reply_id,
        author=_user_summary(comment.author),
        article=_article_summary(comment.article),
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class CommentStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _select_comments() -> Select:
        return (
            select(Comment)
            .options(joinedload(Comment.author), joinedload(Comment.article))
            .execution_options(populate_existing=True)
        )

    async def _fetch_many(self, stmt: Select) -> list[CommentRecord]:
        with backend_errors():
            result = await self.session.execute(stmt)
        return [_to_record(c) for c in result.unique().scalars().all()]

    async def _fetch_one(self, stmt: Select) -> CommentRecord | None:
        with backend_errors():
            result = await self.session.execute(stmt)
        comment = result.unique().scalar_one_or_none()
        return _to_record(comment) if comment is not None else None

    # -- point lookups -------------------------------------------------------

    async def find_by_public_id(self, comment_uuid: str) -> CommentRecord | None:
        return await self._fetch_one(self._select_comments().where(Comment.uuid == comment_uuid))

    async def find_by_id(self, comment_id: int) -> CommentRecord | None:
        return await self._fetch_one(self._select_comments().where(Comment.id == comment_id))

    async def find_article_id(self, article_uuid: str) -> int | None:
        """Resolve an article's public UUID to its internal id."""
        with backend_errors():
            result = await self.session.execute(
                select(Article.id).where(Article.uuid == article_uuid)
            )
        return result.scalar_one_or_none()

    # -- listings ------------------------------------------------------------

    async def find_root_comments(
        self, article_id: int, order_by: Sequence, skip: int, limit: int
    ) -> list[CommentRecord]:
        """Visible top-level comments of an article, hidden ones excluded."""
        stmt = (
            self._select_comments()
            .where(
                Comment.article_id == article_id,
                Comment.reply_id.is_(None),
                Comment.hidden.is_(False),
            )
            .order_by(*order_by)
            .offset(skip)
            .limit(limit)
        )
        return await self._fetch_many(stmt)

    async def find_replies(
        self, parent_id: int, order_by: Sequence, skip: int, limit: int
    ) -> list[CommentRecord]:
        stmt = (
            self._select_comments()
            .where(Comment.reply_id == parent_id)
            .order_by(*order_by)
            .offset(skip)
            .limit(limit)
        )
        return await self._fetch_many(stmt)

    async def count_replies(self, parent_id: int) -> int:
        stmt = select(func.count()).select_from(Comment).where(Comment.reply_id == parent_id)
        with backend_errors():
            return (await self.session.execute(stmt)).scalar_one()

    # -- writes --------------------------------------------------------------

    async def create(
        self, author_id: int, article_id: int, content: str, reply_id: int | None = None
    ) -> CommentRecord:
        """
        Insert a comment and return it re-read from the database.

        Raises ``PersistFailedError`` when the insert is rejected or the
        row cannot be read back.
        """
        comment = Comment(
            content=content,
            author_id=author_id,
            article_id=article_id,
            reply_id=reply_id,
        )
        with backend_errors():
            self.session.add(comment)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                raise PersistFailedError() from exc

        record = await self.find_by_id(comment.id)
        if record is None:
            raise PersistFailedError()
        return record

    async def update_content(self, comment_id: int, author_id: int, content: str) -> CommentRecord:
        stmt = (
            update(Comment)
            .where(Comment.id == comment_id, Comment.author_id == author_id)
            .values(content=content, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with backend_errors():
            result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError("Can't find this comment")

        record = await self.find_by_id(comment_id)
        if record is None:
            raise PersistFailedError("We are not able to save comment")
        return record

    async def delete(self, comment_id: int, author_id: int) -> CommentRecord:
        """Delete the comment and return the state it had just before."""
        prior = await self.find_by_id(comment_id)
        if prior is None:
            raise NotFoundError("Can't find this comment")

        stmt = (
            delete(Comment)
            .where(Comment.id == comment_id, Comment.author_id == author_id)
            .execution_options(synchronize_session=False)
        )
        with backend_errors():
            result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError("Can't find this comment")
        return prior
