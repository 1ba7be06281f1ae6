"""
Post service — business logic for the Post aggregate.

Design notes
------------
- Author and category references are never exposed raw: every post that
  leaves this module has ``author`` resolved to ``{id, username}``,
  ``category`` to ``{id, name}`` and each comment's ``user`` to
  ``{id, username}``.
- Relationships are declared ``lazy="noload"``; ``fetch_post`` loads them
  with ``joinedload`` (many-to-one) and ``selectinload`` (comments) and
  ``populate_existing`` so a read after a write in the same session never
  returns stale attributes.
- The view counter is bumped with a single ``UPDATE ... SET view_count =
  view_count + 1`` so concurrent readers cannot lose increments.
- Ownership is checked on every update/delete by strict equality of the
  caller's id and the stored ``author_id``.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
import math
import re
import time

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.config import settings
from app.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.models import Category, Comment, Post
from app.schemas import Pagination, PostCreate, PostListResponse, PostUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
_SLUG_STRIP_RE = re.compile(r"[^\w ]+", re.ASCII)
_SLUG_SPACE_RE = re.compile(r" +")

# Fields that may be updated but never set to null.
_NON_NULLABLE_FIELDS = ("title", "content", "category", "tags", "is_published")


def slugify(title: str, max_length: int | None = None) -> str:
    """
    Lower-case *title*, drop everything but ASCII word characters and
    spaces, turn each run of spaces into one hyphen and cut the result to
    *max_length* characters.
    """
    limit = max_length if max_length is not None else settings.SLUG_MAX_LENGTH
    text = _SLUG_STRIP_RE.sub("", title.lower())
    text = _SLUG_SPACE_RE.sub("-", text)
    return text[:limit]


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_object_id(value: str) -> bool:
    return bool(_OBJECT_ID_RE.match(value))


def derive_excerpt(content: str, length: int | None = None) -> str:
    """Return the first *length* characters of *content*, marked with ``...`` when cut."""
    limit = length if length is not None else settings.EXCERPT_LENGTH
    text = content.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


async def _generate_slug(db: AsyncSession, title: str) -> str:
    """
    Return ``<slugified title>-<epoch ms>``.

    Two identical titles inside the same millisecond would collide, so the
    suffix is bumped until the slug is unused.
    """
    base = slugify(title) or "post"
    stamp = _now_ms()
    while True:
        slug = f"{base}-{stamp}"
        taken = await db.scalar(select(Post.id).where(Post.slug == slug))
        if taken is None:
            return slug
        stamp += 1


def _clean_tags(tags: list[str]) -> list[str]:
    return [t.strip() for t in tags if t.strip()]


def _require_text(field: str, value: str) -> str:
    if not value.strip():
        raise ValidationError(f"{field.capitalize()} is required")
    return value


async def _resolve_category(db: AsyncSession, category_id: str) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise ValidationError("Category does not exist")
    return category


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_summary(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "username": user.username}


def _category_summary(category) -> dict | None:
    if category is None:
        return None
    return {"id": category.id, "name": category.name}


def _comment_to_dict(comment: Comment) -> dict:
    return {
        "user": _user_summary(comment.user),
        "content": comment.content,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


def serialize_post(post: Post) -> dict:
    """Serialise a fully loaded Post ORM instance to a plain dict."""
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "content": post.content,
        "excerpt": post.excerpt,
        "tags": list(post.tags or []),
        "is_published": post.is_published,
        "view_count": post.view_count,
        "author": _user_summary(post.author),
        "category": _category_summary(post.category),
        "comments": [_comment_to_dict(c) for c in post.comments],
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
    }


def _with_relations(stmt):
    return stmt.options(
        joinedload(Post.author),
        joinedload(Post.category),
        selectinload(Post.comments).joinedload(Comment.user),
    )


async def fetch_post(db: AsyncSession, post_id: str) -> Post | None:
    """Load *post_id* with author, category and comment users populated."""
    q = _with_relations(select(Post).where(Post.id == post_id)).execution_options(
        populate_existing=True
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _get_owned_post(db: AsyncSession, user_id: str, post_id: str) -> Post:
    post = await fetch_post(db, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if post.author_id != user_id:
        logger.warning("User id=%s denied write access to post id=%s", user_id, post_id)
        raise PermissionDeniedError("Not authorized to modify this post")
    return post


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    category: str | None = None,
    search: str | None = None,
) -> PostListResponse:
    """
    Return one page of published posts, newest first.

    *category* narrows to one category id; *search* keeps posts whose
    title or content contains it, case-insensitively.
    """
    conditions = [Post.is_published.is_(True)]
    if category:
        conditions.append(Post.category_id == category)
    if search:
        conditions.append(
            or_(
                Post.title.icontains(search, autoescape=True),
                Post.content.icontains(search, autoescape=True),
            )
        )

    count_q = select(func.count()).select_from(Post).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    posts_q = (
        _with_relations(select(Post).where(*conditions))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(posts_q)
    posts = result.unique().scalars().all()

    return PostListResponse(
        posts=[serialize_post(p) for p in posts],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


async def create_post(db: AsyncSession, author_id: str, data: PostCreate) -> dict:
    """
    Create a post authored by *author_id* and return it populated.

    A slug is generated from the title unless the caller supplies one; a
    supplied slug that is already taken raises ConflictError.
    """
    title = _require_text("title", data.title)
    content = _require_text("content", data.content)
    category = await _resolve_category(db, _require_text("category", data.category))

    if data.slug:
        taken = await db.scalar(select(Post.id).where(Post.slug == data.slug))
        if taken is not None:
            raise ConflictError("A post with this slug already exists")
        slug = data.slug
    else:
        slug = await _generate_slug(db, title)

    post = Post(
        title=title,
        slug=slug,
        content=content,
        excerpt=data.excerpt or derive_excerpt(content),
        tags=_clean_tags(data.tags),
        is_published=data.is_published,
        author_id=author_id,
        category_id=category.id,
        view_count=0,
    )
    db.add(post)
    await db.flush()
    logger.info("User id=%s created post id=%s slug=%s", author_id, post.id, post.slug)

    return serialize_post(await fetch_post(db, post.id))


async def get_post(db: AsyncSession, id_or_slug: str) -> dict:
    """
    Return the post addressed by a 24-hex id or by slug, counting the view.

    Every successful fetch increments ``view_count`` by exactly one before
    the post is read back.
    """
    if is_object_id(id_or_slug):
        lookup = Post.id == id_or_slug.lower()
    else:
        lookup = Post.slug == id_or_slug

    post_id = await db.scalar(select(Post.id).where(lookup))
    if post_id is None:
        raise NotFoundError("Post not found")

    # updated_at is pinned so a view is not recorded as an edit.
    await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(view_count=Post.view_count + 1, updated_at=Post.updated_at)
    )
    return serialize_post(await fetch_post(db, post_id))


async def update_post(db: AsyncSession, user_id: str, post_id: str, data: PostUpdate) -> dict:
    """
    Apply the fields present in *data* to a post owned by *user_id*.

    A changed title regenerates the slug. The author is never changed.
    """
    post = await _get_owned_post(db, user_id, post_id)

    changes = data.model_dump(exclude_unset=True)
    for field in _NON_NULLABLE_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field.capitalize()} cannot be null")

    if "title" in changes:
        _require_text("title", changes["title"])
        if changes["title"] != post.title:
            post.slug = await _generate_slug(db, changes["title"])
        post.title = changes["title"]
    if "content" in changes:
        post.content = _require_text("content", changes["content"])
    if "category" in changes:
        post.category_id = (await _resolve_category(db, changes["category"])).id
    if "excerpt" in changes:
        post.excerpt = changes["excerpt"]
    if "tags" in changes:
        post.tags = _clean_tags(changes["tags"])
    if "is_published" in changes:
        post.is_published = changes["is_published"]

    await db.flush()
    logger.info("User id=%s updated post id=%s fields=%s", user_id, post_id, sorted(changes))
    return serialize_post(await fetch_post(db, post_id))


async def delete_post(db: AsyncSession, user_id: str, post_id: str) -> None:
    """Permanently remove a post owned by *user_id* together with its comments."""
    post = await _get_owned_post(db, user_id, post_id)

    # fetch_post loads comments; delete-orphan removes them with the post.
    await db.delete(post)
    await db.flush()
    logger.info("User id=%s deleted post id=%s", user_id, post_id)
