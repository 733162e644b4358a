from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from article_comments.database import get_db
from article_comments.models import Article, Comment, User
from article_comments.schemas import MetricsResponse
from article_comments.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):

    total_comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()

    replies = (
        await db.execute(select(func.count()).select_from(Comment).where(Comment.reply_id.is_not(None)))
    ).scalar_one()

    hidden = (
        await db.execute(select(func.count()).select_from(Comment).where(Comment.hidden.is_(True)))
    ).scalar_one()

    total_articles = (await db.execute(select(func.count()).select_from(Article))).scalar_one()

    total_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()

    return MetricsResponse(
        total_comments=total_comments,
        root_comments=total_comments - replies,
        replies=replies,
        hidden_comments=hidden,
        total_articles=total_articles,
        total_users=total_users,
        cache_info=cache.stats,
    )
