from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# Columns a listing may be ordered by; mirrored by the column map in
# ``services.listing``.
SortColumn = Literal["content", "created_at", "updated_at", "vote_count", "uuid"]
SortDirection = Literal["asc", "desc"]


# --- Listing input ---

class OrderItem(BaseModel):
    column: SortColumn
    order: SortDirection = "asc"


class ListingQuery(BaseModel):
    offset: int = Field(0, ge=0, description="Number of pages of `limit` records to skip.")
    limit: int = Field(20, ge=1, description="Maximum records in the page.")
    order: list[OrderItem] = []


# --- Comment input ---

class CommentContent(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


# --- Summaries (de-identified projections) ---

class UserSummary(BaseModel):
    uuid: str
    username: str
    created_at: datetime | None = None


class ArticleSummary(BaseModel):
    uuid: str
    title: str
    content: str
    hidden: bool
    vote_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


# --- Comment output ---

class CommentResponse(BaseModel):
    uuid: str
    content: str
    hidden: bool
    vote_count: int
    created_at: datetime
    updated_at: datetime
    author: UserSummary | None = None
    article: ArticleSummary | None = None


class CommentListing(BaseModel):
    limit: int
    offset: int
    order: list[OrderItem]
    total: int
    records: list[CommentResponse]


class CommentEnvelope(BaseModel):
    success: bool = True
    result: CommentResponse


class ListingEnvelope(BaseModel):
    success: bool = True
    result: CommentListing


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    type: str


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_comments: int
    root_comments: int
    replies: int
    hidden_comments: int
    total_articles: int
    total_users: int
    cache_info: dict = {}
