"""
Direct service-layer tests — exercises business logic without HTTP overhead.

These call service functions with a database session and assert on the
returned dicts, the raised errors and the stored rows.
"""
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app import security
from app.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import Comment, Post, User
from app.schemas import (
    CategoryCreate,
    CommentCreate,
    LoginRequest,
    PostCreate,
    PostUpdate,
    RegisterRequest,
)
from app.services import category_service, comment_service, post_service, user_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _category(db: AsyncSession, name: str = "General") -> str:
    return (await category_service.create_category(db, CategoryCreate(name=name)))["id"]


def _post_data(category_id: str, **fields) -> PostCreate:
    values = {"title": "Service Post", "content": "Content", "category": category_id, "is_published": True}
    values.update(fields)
    return PostCreate(**values)


# ---------------------------------------------------------------------------
# security
# ---------------------------------------------------------------------------

def test_password_hash_roundtrip():
    hashed = security.hash_password("secret123")
    assert hashed != "secret123"
    assert security.verify_password("secret123", hashed)
    assert not security.verify_password("wrong", hashed)


def test_password_hash_beyond_bcrypt_input_limit():
    plain = "ü" * 128
    hashed = security.hash_password(plain)
    assert security.verify_password(plain, hashed)
    assert not security.verify_password("ü" * 127 + "u", hashed)


def test_verify_password_with_garbage_hash():
    assert security.verify_password("secret123", "not-a-bcrypt-hash") is False


def test_token_roundtrip():
    token = security.create_access_token("a" * 24)
    assert security.verify_token(token) == "a" * 24


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_verify_token_rejects_bad_input(token):
    with pytest.raises(AuthenticationError):
        security.verify_token(token)


def test_verify_token_rejects_foreign_signature():
    from jose import jwt

    forged = jwt.encode({"sub": "a" * 24}, "some-other-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError):
        security.verify_token(forged)


# ---------------------------------------------------------------------------
# user_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_stores_hash_not_password(db_session: AsyncSession):
    result = await user_service.register(
        db_session, RegisterRequest(username="hasher", email="Hasher@Example.com", password="secret123")
    )
    stored = (await db_session.execute(select(User).where(User.id == result["user"]["id"]))).scalar_one()
    assert stored.password_hash != "secret123"
    assert stored.email == "hasher@example.com"
    assert "password_hash" not in result["user"]

    logged_in = await user_service.login(
        db_session, LoginRequest(email="hasher@example.com", password="secret123")
    )
    assert logged_in["user"]["id"] == stored.id
    assert security.verify_token(logged_in["token"]) == stored.id


@pytest.mark.asyncio
async def test_register_conflict_on_email(db_session: AsyncSession):
    await user_service.register(db_session, RegisterRequest(username="one", email="x@example.com", password="secret123"))
    with pytest.raises(ConflictError):
        await user_service.register(
            db_session, RegisterRequest(username="two", email="x@example.com", password="secret123")
        )


@pytest.mark.asyncio
async def test_login_failures(db_session: AsyncSession, make_user):
    await make_user("knows")
    with pytest.raises(AuthenticationError):
        await user_service.login(db_session, LoginRequest(email="knows@example.com", password="nope"))
    with pytest.raises(AuthenticationError):
        await user_service.login(db_session, LoginRequest(email="ghost@example.com", password="secret123"))


@pytest.mark.asyncio
async def test_get_current_user_not_found(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await user_service.get_current_user(db_session, "e" * 24)


@pytest.mark.asyncio
async def test_get_users_newest_first(db_session: AsyncSession, make_user):
    await make_user("first")
    await make_user("second")
    users = await user_service.get_users(db_session)
    assert [u["username"] for u in users] == ["second", "first"]


# ---------------------------------------------------------------------------
# post_service helpers
# ---------------------------------------------------------------------------

def test_slugify_strips_and_collapses():
    assert post_service.slugify("Hello, World!  Today") == "hello-world-today"
    assert post_service.slugify("snake_case stays") == "snake_case-stays"
    assert post_service.slugify("Café au lait") == "caf-au-lait"


def test_slugify_truncates():
    assert len(post_service.slugify("word " * 30)) == 50


def test_is_object_id():
    assert post_service.is_object_id("0123456789abcdefABCDEF01")
    assert not post_service.is_object_id("0123456789abcdef")
    assert not post_service.is_object_id("hello-world-1700000000000")


def test_derive_excerpt():
    assert post_service.derive_excerpt("  short  ") == "short"
    long_text = "x" * 300
    excerpt = post_service.derive_excerpt(long_text, length=10)
    assert excerpt == "x" * 10 + "..."


# ---------------------------------------------------------------------------
# post_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_posts_empty(db_session: AsyncSession):
    result = await post_service.get_posts(db_session)
    assert result.posts == []
    assert result.pagination.total == 0
    assert result.pagination.pages == 0


@pytest.mark.asyncio
async def test_create_post_derives_excerpt(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    created = await post_service.create_post(db_session, user.id, _post_data(category_id, content="c" * 500))
    assert created["excerpt"].endswith("...")

    explicit = await post_service.create_post(
        db_session, user.id, _post_data(category_id, excerpt="Hand written")
    )
    assert explicit["excerpt"] == "Hand written"


@pytest.mark.asyncio
async def test_create_post_blank_title_rejected(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    with pytest.raises(ValidationError):
        await post_service.create_post(db_session, user.id, _post_data(category_id, title="   "))


@pytest.mark.asyncio
async def test_create_post_unknown_category(db_session: AsyncSession, make_user):
    user = await make_user()
    with pytest.raises(ValidationError):
        await post_service.create_post(db_session, user.id, _post_data("f" * 24))


@pytest.mark.asyncio
async def test_create_post_slug_collision_bumps_suffix(db_session: AsyncSession, make_user, monkeypatch):
    """Identical titles inside the same millisecond still get distinct slugs."""
    monkeypatch.setattr(post_service, "_now_ms", lambda: 1_700_000_000_000)
    user = await make_user()
    category_id = await _category(db_session)
    first = await post_service.create_post(db_session, user.id, _post_data(category_id, title="Same"))
    second = await post_service.create_post(db_session, user.id, _post_data(category_id, title="Same"))
    assert first["slug"] == "same-1700000000000"
    assert second["slug"] == "same-1700000000001"


@pytest.mark.asyncio
async def test_get_post_by_uppercase_id(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    created = await post_service.create_post(db_session, user.id, _post_data(category_id))
    fetched = await post_service.get_post(db_session, created["id"].upper())
    assert fetched["id"] == created["id"]


@pytest.mark.asyncio
async def test_view_does_not_touch_updated_at(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    created = await post_service.create_post(db_session, user.id, _post_data(category_id))
    first = await post_service.get_post(db_session, created["id"])
    second = await post_service.get_post(db_session, created["id"])
    assert second["view_count"] == first["view_count"] + 1
    assert second["updated_at"] == first["updated_at"]


@pytest.mark.asyncio
async def test_update_post_partial_merge(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    other_category = await _category(db_session, "Other")
    created = await post_service.create_post(
        db_session, user.id, _post_data(category_id, tags=["a"], excerpt="keep me")
    )
    updated = await post_service.update_post(
        db_session, user.id, created["id"], PostUpdate(category=other_category)
    )
    assert updated["category"]["id"] == other_category
    assert updated["title"] == created["title"]
    assert updated["slug"] == created["slug"]
    assert updated["tags"] == ["a"]
    assert updated["excerpt"] == "keep me"


@pytest.mark.asyncio
async def test_update_post_unknown_category(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    created = await post_service.create_post(db_session, user.id, _post_data(category_id))
    with pytest.raises(ValidationError):
        await post_service.update_post(db_session, user.id, created["id"], PostUpdate(category="f" * 24))


@pytest.mark.asyncio
async def test_update_and_delete_ownership(db_session: AsyncSession, make_user):
    owner = await make_user("owner")
    intruder = await make_user("intruder")
    category_id = await _category(db_session)
    created = await post_service.create_post(db_session, owner.id, _post_data(category_id))

    with pytest.raises(PermissionDeniedError):
        await post_service.update_post(db_session, intruder.id, created["id"], PostUpdate(title="X"))
    with pytest.raises(PermissionDeniedError):
        await post_service.delete_post(db_session, intruder.id, created["id"])
    with pytest.raises(NotFoundError):
        await post_service.delete_post(db_session, owner.id, "0" * 24)


@pytest.mark.asyncio
async def test_delete_post_removes_comments(db_session: AsyncSession, make_user):
    user = await make_user()
    category_id = await _category(db_session)
    created = await post_service.create_post(db_session, user.id, _post_data(category_id))
    await comment_service.add_comment(db_session, user.id, created["id"], CommentCreate(content="hi"))

    await post_service.delete_post(db_session, user.id, created["id"])
    assert await db_session.scalar(select(Post.id).where(Post.id == created["id"])) is None
    assert (await db_session.execute(select(Comment))).scalars().all() == []


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_comment_nonexistent_post(db_session: AsyncSession, make_user):
    user = await make_user()
    with pytest.raises(NotFoundError):
        await comment_service.add_comment(db_session, user.id, "9" * 24, CommentCreate(content="Ghost"))


# ---------------------------------------------------------------------------
# category_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_categories_in_insertion_order(db_session: AsyncSession):
    for name in ("B", "A", "C"):
        await category_service.create_category(db_session, CategoryCreate(name=name))
    assert [c["name"] for c in await category_service.get_categories(db_session)] == ["B", "A", "C"]
