# app/services/auth.py
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.exceptions import (
    ValidationFailed, InvalidCredentials, Unauthenticated, NotFound,
    InvalidOrExpiredToken, EmailDeliveryFailed,
)
from app.core.security import (
    get_password_hash, verify_password, decode_access_token,
    create_password_reset_token, hash_reset_token,
)
from app.db.session import run_with_timeout
from app.models.base import Base
from app.models.users import User, UserRole
from app.schemas.user import UserCreate, PasswordReset, PasswordUpdate
from app.services.email import Email


async def hash_password(password: str) -> str:
    return await run_in_threadpool(get_password_hash, password)


async def check_password(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)


async def get_active_user(db: AsyncSession, *criteria) -> Optional[User]:
    result = await run_with_timeout(db.execute(
        select(User).where(User.active.is_(True), *criteria)
    ))
    return result.scalar_one_or_none()


async def set_password(user: User, password: str) -> None:
    user.password_hash = await hash_password(password)
    user.password_changed_at = datetime.now(timezone.utc)
    user.password_reset_token = None
    user.password_reset_expires = None


async def signup(db: AsyncSession, payload: UserCreate) -> User:
    user = User(
        sid=Base.generate_sid(),
        name=payload.name,
        email=payload.email,
        password_hash=await hash_password(payload.password),
        role=UserRole.USER,
        active=True,
    )
    db.add(user)
    await run_with_timeout(db.commit())
    logger.info(f"User {user.sid} signed up")
    return user


async def login(db: AsyncSession, email: Optional[str], password: Optional[str]) -> User:
    if not email or not password:
        raise ValidationFailed("Please provide email and password!")

    user = await get_active_user(db, User.email == email.strip().lower())
    if user is None or not await check_password(password, user.password_hash):
        raise InvalidCredentials()
    return user


async def resolve_user(db: AsyncSession, token: Optional[str]) -> User:
    """Turns a bearer token into the user it was issued to, or raises Unauthenticated"""
    if not token:
        raise Unauthenticated()

    payload = decode_access_token(token)

    user = await get_active_user(db, User.sid == payload.sub)
    if user is None:
        raise Unauthenticated("The user belonging to this token no longer exists.")

    if user.changed_password_after(payload.iat):
        raise Unauthenticated("User recently changed password! Please log in again.")

    return user


async def forgot_password(db: AsyncSession, email: str, build_reset_url: Callable[[str], str]) -> None:
    user = await get_active_user(db, User.email == (email or "").strip().lower())
    if user is None:
        raise NotFound("There is no user with that email address.")

    raw_token, hashed_token = create_password_reset_token()
    user.password_reset_token = hashed_token
    user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    await run_with_timeout(db.commit())

    try:
        sent = await Email(user.email, user.name, build_reset_url(raw_token)).send_password_reset()
    except Exception:
        logger.exception(f"Password reset email to user {user.sid} failed")
        sent = False

    if not sent:
        user.password_reset_token = None
        user.password_reset_expires = None
        await run_with_timeout(db.commit())
        raise EmailDeliveryFailed()

    logger.info(f"Password reset token sent to user {user.sid}")


async def reset_password(db: AsyncSession, raw_token: str, payload: PasswordReset) -> User:
    user = await get_active_user(
        db,
        User.password_reset_token == hash_reset_token(raw_token),
        User.password_reset_expires > datetime.now(timezone.utc),
    )
    if user is None:
        raise InvalidOrExpiredToken()

    await set_password(user, payload.password)
    await run_with_timeout(db.commit())
    logger.info(f"User {user.sid} reset their password")
    return user


async def update_password(db: AsyncSession, user: User, payload: PasswordUpdate) -> User:
    if not await check_password(payload.password_current, user.password_hash):
        raise InvalidCredentials("Your current password is wrong.")

    await set_password(user, payload.password)
    await run_with_timeout(db.commit())
    logger.info(f"User {user.sid} changed their password")
    return user


async def deactivate(db: AsyncSession, user: User) -> None:
    user.active = False
    await run_with_timeout(db.commit())
    logger.info(f"User {user.sid} deactivated their account")
