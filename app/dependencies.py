import logging
from contextvars import ContextVar

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import AuthenticationError
from app.models import User
from app.security import verify_token

logger = logging.getLogger(__name__)

# Identity resolved by the auth gateway for the current request.
current_user_id_var: ContextVar[str | None] = ContextVar("current_user_id", default=None)

_bearer_scheme = HTTPBearer(auto_error=False, description="Identity token from /api/auth/login")


class PaginationParams:
    """
    Reusable FastAPI dependency that parses the ``page`` / ``limit``
    query parameters of list endpoints.

    Attributes
    ----------
    page:
        1-based page number (minimum 1, default 1).
    limit:
        Items per page, default ``settings.DEFAULT_PAGE_SIZE``; values above
        ``settings.MAX_PAGE_SIZE`` are rejected with 400.
    offset:
        Rows to skip, ``(page - 1) * limit``.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description=f"Number of posts per page (max {settings.MAX_PAGE_SIZE}).",
        ),
    ) -> None:
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


async def get_token_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """
    Verify the bearer token and record the identity it asserts on
    ``request.state.user_id`` and ``current_user_id_var``.

    Does not touch the database. Only ``/api/auth/me`` uses this directly,
    so that an identity which no longer resolves is reported as 404 there.
    """
    user_id = verify_token(credentials.credentials if credentials else None)
    request.state.user_id = user_id
    current_user_id_var.set(user_id)
    return user_id


async def get_current_user_id(
    user_id: str = Depends(get_token_user_id),
    db: AsyncSession = Depends(get_db),
) -> str:
    """
    Auth gateway for protected routes.

    A missing, invalid or expired token, or one naming a user that is not
    stored, raises AuthenticationError (401) before the route body runs.
    Evaluated on every request; nothing is cached.
    """
    if await db.get(User, user_id) is None:
        logger.warning("Rejected token for unknown user id=%s", user_id)
        raise AuthenticationError("User no longer exists")
    return user_id
