from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile
from typing import Any, Dict, Optional, Tuple

from app.core.dependencies import protect, restrict_to
from app.core.exceptions import AppError, ValidationFailed
from app.db.session import get_db
from app.models.users import User
from app.schemas.user import UserResponse, UserUpdate, UserAdminWrite
from app.services import auth as auth_service
from app.services.factory import ResourceHandler
from app.services.images import USER_PHOTO_SIZE, image_filename, save_upload, stored_images

router = APIRouter()

UPDATE_ME_FIELDS = ("name", "email")

user_handler = ResourceHandler(
    User,
    UserResponse,
    create_schema=UserAdminWrite,
    update_schema=UserUpdate,
    filterable={"name", "email", "role"},
    default_sort="name",
    base_filters=lambda: [User.active.is_(True)],
)


async def read_body(request: Request) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """Reads a JSON or form body; form bodies may carry a `photo` upload"""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        photo = form.get("photo")
        data = {key: value for key, value in form.items() if isinstance(value, str)}
        return data, photo if isinstance(photo, UploadFile) and photo.filename else None

    raw = await request.body()
    if not raw:
        return {}, None
    try:
        data = await request.json()
    except ValueError:
        raise ValidationFailed("Invalid input data. Malformed JSON body")
    if not isinstance(data, dict):
        raise ValidationFailed("Invalid input data. Expected a JSON object")
    return data, None


@router.get("/me")
async def get_me(
        current_user: User = Depends(protect),
        db: AsyncSession = Depends(get_db),
):
    user = await user_handler.get_one(db, current_user.sid)
    return {"status": "success", "data": {"data": user}}


@router.patch("/updateMe")
async def update_me(
        request: Request,
        current_user: User = Depends(protect),
        db: AsyncSession = Depends(get_db),
):
    data, photo = await read_body(request)

    if data.get("password") or data.get("password_confirm"):
        raise AppError("This route is not for password updates. Please use /updateMyPassword.", 400)

    # only name and email; role and other fields stay out of reach
    values = {key: data[key] for key in UPDATE_ME_FIELDS if key in data}

    async with stored_images() as written:
        if photo is not None:
            values["photo"] = await save_upload(
                photo,
                USER_PHOTO_SIZE,
                "users",
                image_filename("user", current_user.sid),
                written,
            )
        user = await user_handler.update_one(db, current_user.sid, values)

    return {"status": "success", "data": {"user": user}}


@router.delete("/deleteMe", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
        current_user: User = Depends(protect),
        db: AsyncSession = Depends(get_db),
):
    await auth_service.deactivate(db, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


admin_only = [Depends(restrict_to("admin"))]


@router.get("", dependencies=admin_only)
async def get_all_users(
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    users = await user_handler.list(db, request.query_params.multi_items())
    return {"status": "success", "results": len(users), "data": {"data": users}}


@router.post("", dependencies=admin_only)
async def create_user():
    raise AppError("This route is not defined! Please use /signup instead", 500)


@router.get("/{user_id}", dependencies=admin_only)
async def get_user(
        user_id: str,
        db: AsyncSession = Depends(get_db),
):
    user = await user_handler.get_one(db, user_id)
    return {"status": "success", "data": {"data": user}}


@router.patch("/{user_id}", dependencies=admin_only)
async def update_user(
        user_id: str,
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    data, _ = await read_body(request)
    if "password" in data or "password_confirm" in data:
        raise AppError("This route is not for password updates. Please use /updateMyPassword.", 400)
    user = await user_handler.update_one(db, user_id, data)
    return {"status": "success", "data": {"data": user}}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin_only)
async def delete_user(
        user_id: str,
        db: AsyncSession = Depends(get_db),
):
    await user_handler.delete_one(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
