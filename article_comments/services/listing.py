"""
Listing engine: ordering and pagination shared by root-comment and
reply listings.

- ``order`` is a sequence: ties on the first column are broken by the
  second, and so on.  ``Comment.id`` ascending is always appended last,
  so rows equal on every requested column still come back in the same
  order on every call and pages never overlap.
- ``offset`` counts pages, not records: the window starts at
  ``offset * limit``.  Changing ``limit`` between calls therefore moves
  the window by whole pages of the new size.
"""
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import asc, desc

from article_comments.errors import ValidationFailedError
from article_comments.models import Comment
from article_comments.schemas import ListingQuery, OrderItem
from article_comments.services.comment_store import CommentRecord, CommentStore

# Columns that are safe to sort by; guards against arbitrary attribute access.
SORTABLE_COLUMNS = {
    "content": Comment.content,
    "created_at": Comment.created_at,
    "updated_at": Comment.updated_at,
    "vote_count": Comment.vote_count,
    "uuid": Comment.uuid,
}


@dataclass
class ListingPage:
    records: list[CommentRecord]
    total: int


def build_order_by(order: Sequence[OrderItem]) -> list:
    """
    Translate *order* into ``ORDER BY`` clauses, left to right, followed
    by the ``Comment.id`` tiebreak.  A column listed twice keeps its
    first direction.
    """
    clauses = []
    seen: set[str] = set()
    for item in order:
        column = SORTABLE_COLUMNS.get(item.column)
        if column is None:
            raise ValidationFailedError(f"Cannot sort comments by {item.column!r}")
        if item.order not in ("asc", "desc"):
            raise ValidationFailedError(f"Unknown sort direction {item.order!r}")
        if item.column in seen:
            continue
        seen.add(item.column)
        clauses.append(desc(column) if item.order == "desc" else asc(column))
    clauses.append(asc(Comment.id))
    return clauses


def page_window(offset: int, limit: int) -> tuple[int, int]:
    """Return ``(skip, limit)`` for page number *offset* of size *limit*."""
    if limit < 1:
        raise ValidationFailedError("limit must be at least 1")
    if offset < 0:
        raise ValidationFailedError("offset must not be negative")
    return offset * limit, limit


async def list_root_comments(store: CommentStore, article_id: int, query: ListingQuery) -> ListingPage:
    """
    One page of an article's visible root comments.

    ``total`` is the number of records in this page, not the number of
    matching comments; clients written against the existing API rely on it.
    """
    skip, limit = page_window(query.offset, query.limit)
    records = await store.find_root_comments(article_id, build_order_by(query.order), skip, limit)
    return ListingPage(records=records, total=len(records))


async def list_replies(store: CommentStore, parent_id: int, query: ListingQuery) -> ListingPage:
    """One page of a comment's replies; ``total`` counts all of them."""
    skip, limit = page_window(query.offset, query.limit)
    records = await store.find_replies(parent_id, build_order_by(query.order), skip, limit)
    total = await store.count_replies(parent_id)
    return ListingPage(records=records, total=total)
