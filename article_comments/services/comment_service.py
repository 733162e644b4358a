"""
Comment service: list, create, edit, reply to and delete comments.

Each function checks its preconditions in a fixed order (identity,
then referenced records, then authorship) and raises the matching
``article_comments.errors`` class on the first one that fails.  Writes
always return the record re-read by the store, never the object that
was handed to it, and every write drops the listing pages it affects
from the cache once its transaction has committed.
"""
import logging
from functools import partial

from article_comments.cache import cache, listing_key
from article_comments.config import settings
from article_comments.database import after_commit
from article_comments.errors import NotAuthorError, NotFoundError, UnauthorizedError
from article_comments.schemas import ListingQuery
from article_comments.services import listing
from article_comments.services.comment_store import CommentRecord, CommentStore
from article_comments.services.guard import can_mutate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def comment_to_dict(record: CommentRecord) -> dict:
    """Public shape of a comment: no internal id, reply link or voters."""
    return {
        "uuid": record.uuid,
        "content": record.content,
        "hidden": record.hidden,
        "vote_count": record.vote_count,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
        "author": record.author,
        "article": record.article,
    }


def _page_to_dict(query: ListingQuery, page: listing.ListingPage) -> dict:
    return {
        "limit": query.limit,
        "offset": query.offset,
        "order": [item.model_dump() for item in query.order],
        "total": page.total,
        "records": [comment_to_dict(r) for r in page.records],
    }


def _require_identity(requester_id: int | None) -> int:
    if requester_id is None:
        raise UnauthorizedError()
    return requester_id


async def _find_comment(store: CommentStore, comment_uuid: str) -> CommentRecord:
    comment = await store.find_by_public_id(comment_uuid)
    if comment is None:
        raise NotFoundError("Can't find this comment")
    return comment


def _check_author(requester_id: int, comment: CommentRecord, action: str) -> None:
    if not can_mutate(requester_id, comment):
        logger.warning("Denied %s of comment %s: requester is not the author", action, comment.uuid)
        raise NotAuthorError()


def _invalidate_on_commit(store: CommentStore, article_uuid: str) -> None:
    after_commit(store.session, partial(cache.invalidate_comments, article_uuid))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def list_article_comments(store: CommentStore, article_uuid: str, query: ListingQuery) -> dict:
    """Root comments of *article_uuid*; hidden comments are left out."""
    cache_key = listing_key(
        "article", article_uuid, query.offset, query.limit, [i.model_dump() for i in query.order]
    )
    cached = await cache.get(cache_key)
    if cached:
        return cached

    article_id = await store.find_article_id(article_uuid)
    if article_id is None:
        raise NotFoundError("Can't find comment for this article")

    page = await listing.list_root_comments(store, article_id, query)
    data = _page_to_dict(query, page)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_LIST)
    return data


async def list_comment_replies(store: CommentStore, comment_uuid: str, query: ListingQuery) -> dict:
    """Replies to *comment_uuid*, with ``total`` counting all of them."""
    cache_key = listing_key(
        "replies", comment_uuid, query.offset, query.limit, [i.model_dump() for i in query.order]
    )
    cached = await cache.get(cache_key)
    if cached:
        return cached

    parent = await store.find_by_public_id(comment_uuid)
    if parent is None:
        raise NotFoundError("Can't find reply for given comment")

    page = await listing.list_replies(store, parent.id, query)
    data = _page_to_dict(query, page)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_LIST)
    return data


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_comment(
    store: CommentStore, article_uuid: str, content: str, requester_id: int | None
) -> dict:
    """Add a root comment to the article identified by *article_uuid*."""
    author_id = _require_identity(requester_id)
    article_id = await store.find_article_id(article_uuid)
    if article_id is None:
        raise NotFoundError("Can't find this article")

    record = await store.create(author_id=author_id, article_id=article_id, content=content)
    _invalidate_on_commit(store, article_uuid)
    logger.info("Comment %s created on article %s", record.uuid, article_uuid)
    return comment_to_dict(record)


async def edit_comment(
    store: CommentStore, comment_uuid: str, content: str, requester_id: int | None
) -> dict:
    """Replace the content of a comment owned by the requester."""
    author_id = _require_identity(requester_id)
    comment = await _find_comment(store, comment_uuid)
    _check_author(author_id, comment, "edit")

    record = await store.update_content(comment.id, author_id, content)
    _invalidate_on_commit(store, record.article["uuid"])
    logger.info("Comment %s edited", record.uuid)
    return comment_to_dict(record)


async def reply_comment(
    store: CommentStore,
    comment_uuid: str,
    article_uuid: str,
    content: str,
    requester_id: int | None,
) -> dict:
    """
    Reply to *comment_uuid* within *article_uuid*.

    The parent must belong to that same article; a parent from another
    article is reported as not found.
    """
    author_id = _require_identity(requester_id)
    article_id = await store.find_article_id(article_uuid)
    if article_id is None:
        raise NotFoundError("Can't find this article")
    parent = await _find_comment(store, comment_uuid)
    if parent.article_id != article_id:
        raise NotFoundError("Can't find this comment in the given article")

    record = await store.create(
        author_id=author_id, article_id=article_id, content=content, reply_id=parent.id
    )
    _invalidate_on_commit(store, article_uuid)
    logger.info("Reply %s created for comment %s", record.uuid, comment_uuid)
    return comment_to_dict(record)


async def delete_comment(store: CommentStore, comment_uuid: str, requester_id: int | None) -> dict:
    """Delete a comment owned by the requester and return what was deleted."""
    author_id = _require_identity(requester_id)
    comment = await _find_comment(store, comment_uuid)
    _check_author(author_id, comment, "delete")

    prior = await store.delete(comment.id, author_id)
    _invalidate_on_commit(store, prior.article["uuid"])
    logger.info("Comment %s deleted", prior.uuid)
    return comment_to_dict(prior)
