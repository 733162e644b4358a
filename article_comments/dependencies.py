from fastapi import Depends, Query, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from article_comments.config import settings
from article_comments.database import backend_errors, get_db
from article_comments.errors import ValidationFailedError
from article_comments.schemas import ListingQuery, OrderItem
from article_comments.services import user_service
from article_comments.services.comment_store import CommentStore


class ListingParams:
    """
    Reusable FastAPI dependency that parses listing query parameters.

    Usage in a router::

        @router.get("/article/{article_uuid}")
        async def list_comments(listing: ListingParams = Depends()):
            ...

    Attributes
    ----------
    offset:
        Number of whole pages to skip (the window starts at
        ``offset * limit``).
    limit:
        Page size, clamped to ``settings.MAX_PAGE_SIZE``.
    order:
        Ordering items parsed from repeated ``order=column:direction``
        parameters, kept in the order given.  The direction defaults to
        ``asc`` when omitted.
    """

    def __init__(
        self,
        offset: int = Query(
            0,
            ge=0,
            description="Number of pages to skip.",
        ),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of comments returned per page, capped at MAX_PAGE_SIZE.",
        ),
        order: list[str] = Query(
            [],
            description="Ordering as 'column:asc' or 'column:desc'; repeat for tie-breaks.",
        ),
    ) -> None:
        self.offset = offset
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.order = [self._parse_order(raw) for raw in order]

    @staticmethod
    def _parse_order(raw: str) -> OrderItem:
        column, _, direction = raw.partition(":")
        try:
            return OrderItem(column=column, order=direction or "asc")
        except ValidationError as exc:
            raise ValidationFailedError(f"Invalid order {raw!r}") from exc

    @property
    def query(self) -> ListingQuery:
        return ListingQuery(offset=self.offset, limit=self.limit, order=self.order)


def get_comment_store(db: AsyncSession = Depends(get_db)) -> CommentStore:
    return CommentStore(db)


async def get_requester_id(request: Request, db: AsyncSession = Depends(get_db)) -> int | None:
    """
    Internal id of the calling user, or None when the request carries no
    identity or names a user that does not exist.
    """
    user_uuid = request.headers.get(settings.IDENTITY_HEADER)
    if not user_uuid:
        return None
    with backend_errors():
        return await user_service.find_user_id(db, user_uuid)
