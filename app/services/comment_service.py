"""
Comment service — append-only comments on the Post aggregate.

Comments cannot be edited or deleted through the API and have no
identity of their own; they are always returned as part of their post.
Any authenticated user may comment on any post, published or not.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models import Comment, Post
from app.schemas import CommentCreate
from app.services.post_service import fetch_post, serialize_post

logger = logging.getLogger(__name__)


async def add_comment(
    db: AsyncSession,
    user_id: str,
    post_id: str,
    data: CommentCreate,
) -> dict:
    """
    Append a comment by *user_id* to *post_id* and return the whole post,
    with every comment's user resolved.

    Raises NotFoundError when the post does not exist.
    """
    exists = await db.scalar(select(Post.id).where(Post.id == post_id))
    if exists is None:
        raise NotFoundError("Post not found")

    db.add(Comment(content=data.content, post_id=post_id, user_id=user_id))
    await db.flush()
    logger.info("User id=%s commented on post id=%s", user_id, post_id)

    return serialize_post(await fetch_post(db, post_id))
