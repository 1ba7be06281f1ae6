"""
User service — registration, login and identity resolution.

Email and username uniqueness is checked up front so the caller gets a
specific message; the unique constraints in the schema remain the final
guard against two concurrent registrations, and an IntegrityError on
flush is reported the same way.
"""
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AuthenticationError, ConflictError, NotFoundError
from app.models import User
from app.schemas import LoginRequest, RegisterRequest
from app.security import create_access_token, dummy_hash, hash_password, verify_password

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """Public user view. The password hash is never included."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _normalise_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register(db: AsyncSession, data: RegisterRequest) -> dict:
    """
    Create a user and return ``{"user": ..., "token": ...}``.

    Raises ConflictError when the email or the username is already taken.
    """
    email = _normalise_email(data.email)
    q = select(User).where(or_(User.email == email, User.username == data.username))
    existing = (await db.execute(q)).scalars().first()
    if existing is not None:
        if existing.email == email:
            raise ConflictError("A user with this email already exists")
        raise ConflictError("A user with this username already exists")

    user = User(
        username=data.username,
        email=email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError("A user with this username or email already exists")

    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return {"user": _user_to_dict(user), "token": create_access_token(user.id)}


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    """
    Verify credentials and return ``{"user": ..., "token": ...}``.

    Unknown email and wrong password raise the same AuthenticationError;
    bcrypt runs in both cases.
    """
    q = select(User).where(User.email == _normalise_email(data.email))
    user = (await db.execute(q)).scalar_one_or_none()

    if user is None:
        verify_password(data.password, dummy_hash())
        logger.warning("Login failed: unknown email")
        raise AuthenticationError(_INVALID_CREDENTIALS)
    if not verify_password(data.password, user.password_hash):
        logger.warning("Login failed: bad password for user id=%s", user.id)
        raise AuthenticationError(_INVALID_CREDENTIALS)

    logger.info("User id=%s logged in", user.id)
    return {"user": _user_to_dict(user), "token": create_access_token(user.id)}


async def get_current_user(db: AsyncSession, user_id: str) -> dict:
    """Return the public view of *user_id*; NotFoundError if it is gone."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return _user_to_dict(user)


async def get_users(db: AsyncSession) -> list[dict]:
    """Return all users ordered by creation date (newest first)."""
    q = select(User).order_by(User.created_at.desc())
    result = await db.execute(q)
    return [_user_to_dict(u) for u in result.scalars().all()]
