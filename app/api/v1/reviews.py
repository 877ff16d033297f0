from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict

from app.core.dependencies import protect, restrict_to
from app.core.exceptions import Forbidden, ValidationFailed
from app.db.session import get_db
from app.models.tours import Review
from app.models.users import User, UserRole
from app.schemas.review import ReviewCreate, ReviewUpdate, ReviewResponse
from app.services.factory import ResourceHandler
from app.services.reviews import review_after_write

router = APIRouter(dependencies=[Depends(protect)])

review_handler = ResourceHandler(
    Review,
    ReviewResponse,
    create_schema=ReviewCreate,
    update_schema=ReviewUpdate,
    filterable={"rating", "tour_sid", "user_sid", "created_at"},
    default_sort="-created_at",
    after_write=review_after_write,
)


async def create_review(db: AsyncSession, body: Dict[str, Any], tour_sid: str, author: User) -> Dict[str, Any]:
    # imported here, the tours router imports this module
    from app.api.v1.tours import tour_handler

    if not tour_sid:
        raise ValidationFailed("Invalid input data. Review must belong to a tour.")
    await tour_handler.find(db, tour_sid)

    return await review_handler.create(db, {**body, "tour_sid": tour_sid, "user_sid": author.sid})


async def find_owned_review(db: AsyncSession, review_id: str, current_user: User) -> Review:
    review = await review_handler.find(db, review_id)
    if current_user.role != UserRole.ADMIN and review.user_sid != current_user.sid:
        raise Forbidden("You can only change your own reviews")
    return review


@router.get("")
async def get_all_reviews(
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    reviews = await review_handler.list(db, request.query_params.multi_items())
    return {"status": "success", "results": len(reviews), "data": {"data": reviews}}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review_route(
        body: Dict[str, Any],
        current_user: User = Depends(restrict_to("user")),
        db: AsyncSession = Depends(get_db),
):
    review = await create_review(db, body, body.get("tour_sid"), current_user)
    return {"status": "success", "data": {"data": review}}


@router.get("/{review_id}")
async def get_review(
        review_id: str,
        db: AsyncSession = Depends(get_db),
):
    review = await review_handler.get_one(db, review_id)
    return {"status": "success", "data": {"data": review}}


@router.patch("/{review_id}")
async def update_review(
        review_id: str,
        body: Dict[str, Any],
        current_user: User = Depends(restrict_to("user", "admin")),
        db: AsyncSession = Depends(get_db),
):
    await find_owned_review(db, review_id, current_user)
    review = await review_handler.update_one(db, review_id, body)
    return {"status": "success", "data": {"data": review}}


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
        review_id: str,
        current_user: User = Depends(restrict_to("user", "admin")),
        db: AsyncSession = Depends(get_db),
):
    await find_owned_review(db, review_id, current_user)
    await review_handler.delete_one(db, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
