"""Seed the comments database with users, articles, comments and replies."""
import asyncio
import argparse
import random
import time

from article_comments.config import settings
from article_comments.database import Base, build_engine, build_session_factory
from article_comments.models import Article, Comment, User

PHRASES = [
    "Great article, thanks for writing it.",
    "I disagree with the second section.",
    "Could you share the benchmark numbers?",
    "This saved me hours of debugging.",
    "Typo in the third paragraph.",
    "Any plans for a follow-up post?",
]


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 20 if small else 1000
    max_roots_per_article = 3 if small else 10
    max_replies_per_root = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    engine = build_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_factory = build_session_factory(engine)
    total_roots = 0
    total_replies = 0
    async with session_factory() as session:
        users = [
            User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                display_name=f"User {i}",
                bio=f"I am test user number {i}.",
            )
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(users)} users")

        articles = [
            Article(
                title=f"Article {i}",
                content=f"This is the full content of article {i}. " * 10,
                user_id=random.choice(users).id,
            )
            for i in range(num_articles)
        ]
        session.add_all(articles)
        await session.flush()
        print(f"  Created {len(articles)} articles")

        for article in articles:
            roots = [
                Comment(
                    content=random.choice(PHRASES),
                    author_id=random.choice(users).id,
                    article_id=article.id,
                    hidden=random.random() < 0.05,
                    vote_count=random.randint(0, 50),
                )
                for _ in range(random.randint(0, max_roots_per_article))
            ]
            session.add_all(roots)
            await session.flush()
            total_roots += len(roots)

            for root in roots:
                for _ in range(random.randint(0, max_replies_per_root)):
                    session.add(
                        Comment(
                            content=random.choice(PHRASES),
                            author_id=random.choice(users).id,
                            article_id=article.id,
                            reply_id=root.id,
                        )
                    )
                    total_replies += 1
            await session.flush()

        await session.commit()
    await engine.dispose()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Root comments: {total_roots}")
    print(f"  Replies: {total_replies}")


def main():
    parser = argparse.ArgumentParser(description="Seed the comments database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (20 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
