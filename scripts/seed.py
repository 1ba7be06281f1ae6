"""Populate the blog database with demo users, categories, posts and comments."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from app.database import engine, async_session, Base
from app.models import User, Category, Post, Comment
from app.security import hash_password
from app.services.post_service import derive_excerpt, slugify

CATEGORIES = ["Technology", "Travel", "Food", "Lifestyle", "Programming", "Design"]
TAGS = ["python", "fastapi", "postgresql", "docker", "react", "testing",
        "security", "devops", "cooking", "photography", "hiking", "ux"]
DEMO_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 5 if small else 25
    num_posts = 50 if small else 2000
    max_comments_per_post = 2 if small else 6

    print(f"Seeding: {num_users} users, {num_posts} posts, up to {max_comments_per_post} comments each")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        categories = [Category(name=name) for name in CATEGORIES]
        session.add_all(categories)

        # One hash for everyone; bcrypt per user would dominate the run time.
        password_hash = hash_password(DEMO_PASSWORD)
        users = [
            User(
                username=f"user_{i:03d}",
                email=f"user_{i:03d}@example.com",
                password_hash=password_hash,
            )
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(categories)} categories, {len(users)} users")

        total_comments = 0
        now = datetime.now(timezone.utc)
        for i in range(num_posts):
            created = now - timedelta(days=random.randint(0, 365), seconds=random.randint(0, 86400))
            title = f"Post {i}: notes on {random.choice(TAGS)}"
            content = f"This is the full content of post {i}. " * 20
            post = Post(
                title=title,
                slug=f"{slugify(title)}-{int(created.timestamp() * 1000)}-{i}",
                content=content,
                excerpt=derive_excerpt(content),
                tags=random.sample(TAGS, k=random.randint(1, 3)),
                is_published=random.random() > 0.1,  # 90% published
                view_count=random.randint(0, 5000),
                created_at=created,
                updated_at=created,
                author_id=random.choice(users).id,
                category_id=random.choice(categories).id,
            )
            session.add(post)
            for _ in range(random.randint(0, max_comments_per_post)):
                post.comments.append(Comment(
                    content="Thanks for sharing, this was helpful.",
                    user_id=random.choice(users).id,
                    created_at=created + timedelta(hours=random.randint(1, 72)),
                ))
                total_comments += 1

            if i % 500 == 499:
                await session.flush()
                print(f"  {i + 1} posts created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users} (password: {DEMO_PASSWORD})")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
