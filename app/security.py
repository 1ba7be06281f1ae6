"""
Password hashing and identity tokens.

Passwords: bcrypt directly (no passlib wrapper) over a SHA-256 pre-hash,
so input length never exceeds bcrypt's 72-byte limit. The cost factor comes
from ``settings.BCRYPT_ROUNDS`` so the test suite can run with a low one.

Tokens: HS256 JWTs signed with ``settings.SECRET_KEY`` via python-jose.
The payload carries the user id as the ``sub`` claim and an ``exp``
claim; nothing else is trusted from it.
"""
import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def _prehash(plain: str) -> bytes:
    """
    SHA-256 digest of *plain*, base64-encoded to 44 ASCII bytes.

    bcrypt only accepts 72 bytes of input, and a 128-character password
    can be several times that once UTF-8 encoded.
    """
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of *plain*."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_prehash(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if *plain* matches the bcrypt *hashed* value."""
    try:
        return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """
    Hash checked against when the login email is unknown, so both failure
    paths pay the same bcrypt cost.
    """
    return hash_password("timing-equalisation-dummy")


# ---------------------------------------------------------------------------
# Identity tokens
# ---------------------------------------------------------------------------

def create_access_token(user_id: str, expires_minutes: int | None = None) -> str:
    """Sign a token asserting *user_id*, valid for *expires_minutes*."""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str | None) -> str:
    """
    Return the user id asserted by *token*.

    Raises AuthenticationError if the token is missing, malformed, expired
    or fails signature verification.
    """
    if not token:
        raise AuthenticationError("Authentication required")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise AuthenticationError("Invalid token")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthenticationError("Invalid token")
    return user_id
