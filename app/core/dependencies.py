from fastapi import Depends, Request, Cookie
from fastapi.security import OAuth2PasswordBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.config import settings
from app.core.exceptions import AppError, Forbidden, TooManyRequests
from app.db.redis import get_redis
from app.db.session import get_db
from app.models.users import User, UserRole
from app.services.auth import resolve_user

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/users/login", auto_error=False)

TOKEN_COOKIE = "jwt"


async def protect(
        request: Request,
        db: AsyncSession = Depends(get_db),
        bearer_token: Optional[str] = Depends(oauth2_scheme),
        cookie_token: Optional[str] = Cookie(None, alias=TOKEN_COOKIE),
) -> User:
    """
    Requires a valid token from the Authorization header or the jwt cookie
    """
    user = await resolve_user(db, bearer_token or cookie_token)
    request.state.user = user
    return user


async def is_logged_in(
        request: Request,
        db: AsyncSession = Depends(get_db),
        cookie_token: Optional[str] = Cookie(None, alias=TOKEN_COOKIE),
) -> Optional[User]:
    """
    Same checks as protect, for rendered pages only: any failure means anonymous
    """
    if not cookie_token:
        return None
    try:
        user = await resolve_user(db, cookie_token)
    except AppError:
        return None
    request.state.user = user
    return user


def restrict_to(*roles: str):
    """
    Creates a dependency that only lets users with one of `roles` through
    """
    allowed = frozenset(UserRole(role) for role in roles)

    async def role_gate(current_user: User = Depends(protect)) -> User:
        if current_user.role not in allowed:
            raise Forbidden()
        return current_user

    role_gate.allowed_roles = allowed
    return role_gate


def rate_limit_dependency(
        requests_limit: int = settings.RATE_LIMIT_REQUESTS,
        time_window: int = settings.RATE_LIMIT_WINDOW,
):
    """
    Creates a dependency that limits request frequency per client IP
    """

    async def rate_limit(
            request: Request,
            redis: Optional[Redis] = Depends(get_redis)
    ):
        if redis is None:
            return

        client_ip = request.client.host if request.client else "unknown"
        key = f"rate_limit:{client_ip}"

        count = await redis.incr(key)

        # First request in the window starts the TTL
        if count == 1:
            await redis.expire(key, time_window)

        if count > requests_limit:
            raise TooManyRequests()

    return rate_limit
