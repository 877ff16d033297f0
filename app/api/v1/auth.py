from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.dependencies import protect, TOKEN_COOKIE
from app.core.security import create_access_token
from app.db.session import get_db
from app.models.users import User
from app.schemas.user import (
    UserCreate, UserLogin, UserResponse, ForgotPassword, PasswordReset, PasswordUpdate,
)
from app.services import auth as auth_service
from app.tasks.notifications import send_welcome_email

router = APIRouter()


def send_token_response(user: User, status_code: int) -> JSONResponse:
    token = create_access_token(subject=user.sid)

    response = JSONResponse(
        status_code=status_code,
        content={
            "status": "success",
            "token": token,
            "data": {"user": UserResponse.model_validate(user).model_dump(mode="json")},
        },
    )
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.JWT_COOKIE_EXPIRES_IN * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
        user_in: UserCreate,
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    user = await auth_service.signup(db, user_in)

    # the account is committed; a broker outage only costs the welcome email
    try:
        await run_in_threadpool(send_welcome_email.delay, user.email, user.name, f"{request.base_url}me")
    except Exception:
        logger.exception(f"Could not queue welcome email for user {user.sid}")

    return send_token_response(user, status.HTTP_201_CREATED)


@router.post("/login")
async def login(
        credentials: UserLogin,
        db: AsyncSession = Depends(get_db),
):
    user = await auth_service.login(db, credentials.email, credentials.password)
    return send_token_response(user, status.HTTP_200_OK)


@router.get("/logout")
async def logout():
    response = JSONResponse(content={"status": "success"})
    response.set_cookie(TOKEN_COOKIE, "loggedout", max_age=10, httponly=True)
    return response


@router.post("/forgotPassword")
async def forgot_password(
        payload: ForgotPassword,
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    await auth_service.forgot_password(
        db,
        payload.email,
        lambda token: str(request.url_for("reset_password", token=token)),
    )
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/resetPassword/{token}", name="reset_password")
async def reset_password(
        token: str,
        payload: PasswordReset,
        db: AsyncSession = Depends(get_db),
):
    user = await auth_service.reset_password(db, token, payload)
    return send_token_response(user, status.HTTP_200_OK)


@router.patch("/updateMyPassword")
async def update_my_password(
        payload: PasswordUpdate,
        current_user: User = Depends(protect),
        db: AsyncSession = Depends(get_db),
):
    user = await auth_service.update_password(db, current_user, payload)
    return send_token_response(user, status.HTTP_200_OK)
