from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from app.core.dependencies import protect, restrict_to
from app.core.exceptions import QueryCastError, ValidationFailed
from app.db.session import get_db
from app.models.base import Base
from app.models.tours import Tour, Review
from app.models.users import User
from app.schemas.tour import TourCreate, TourUpdate, TourResponse
from app.schemas.review import TourWithReviewsResponse
from app.services import tours as tour_service
from app.services.factory import ResourceHandler
from app.services.images import MAX_TOUR_IMAGES, TOUR_IMAGE_SIZE, image_filename, save_upload, stored_images
from app.api.v1.reviews import create_review, review_handler

router = APIRouter()

tour_handler = ResourceHandler(
    Tour,
    TourResponse,
    create_schema=TourCreate,
    update_schema=TourUpdate,
    detail_schema=TourWithReviewsResponse,
    populate=("reviews",),
    filterable={
        "name", "slug", "duration", "max_group_size", "difficulty", "ratings_average",
        "ratings_quantity", "price", "price_discount", "created_at",
    },
    default_sort="-created_at",
    base_filters=tour_service.visible_tours,
    before_write=tour_service.tour_before_write,
)

tour_managers = restrict_to("admin", "lead-guide")


def _listing(items: List[Any]) -> Dict[str, Any]:
    return {"status": "success", "results": len(items), "data": {"data": items}}


@router.get("/top-5-cheap")
async def get_top_tours(
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    params = tour_service.apply_alias(request.query_params.multi_items(), tour_service.TOP_TOURS_ALIAS)
    return _listing(await tour_handler.list(db, params))


@router.get("/tour-stats")
async def get_tour_stats(db: AsyncSession = Depends(get_db)):
    stats = await tour_service.get_tour_stats(db)
    return {"status": "success", "data": {"stats": stats}}


@router.get("/monthly-plan/{year}", dependencies=[Depends(restrict_to("admin", "lead-guide", "guide"))])
async def get_monthly_plan(
        year: int,
        db: AsyncSession = Depends(get_db),
):
    plan = await tour_service.get_monthly_plan(db, year)
    return {"status": "success", "data": {"plan": plan}}


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
async def get_tours_within(
        distance: float,
        latlng: str,
        unit: str,
        db: AsyncSession = Depends(get_db),
):
    tours = await tour_service.get_tours_within(db, distance, latlng, unit)
    return _listing([tour_handler.serialize(tour) for tour in tours])


@router.get("/distances/{latlng}/unit/{unit}")
async def get_distances(
        latlng: str,
        unit: str,
        db: AsyncSession = Depends(get_db),
):
    distances = await tour_service.get_distances(db, latlng, unit)
    return {"status": "success", "data": {"data": distances}}


@router.get("")
async def get_all_tours(
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    return _listing(await tour_handler.list(db, request.query_params.multi_items()))


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(tour_managers)])
async def create_tour(
        body: Dict[str, Any],
        db: AsyncSession = Depends(get_db),
):
    tour = await tour_handler.create(db, body)
    return {"status": "success", "data": {"data": tour}}


@router.get("/{tour_id}")
async def get_tour(
        tour_id: str,
        db: AsyncSession = Depends(get_db),
):
    tour = await tour_handler.get_one(db, tour_id)
    return {"status": "success", "data": {"data": tour}}


@router.patch("/{tour_id}", dependencies=[Depends(tour_managers)])
async def update_tour(
        tour_id: str,
        body: Dict[str, Any],
        db: AsyncSession = Depends(get_db),
):
    tour = await tour_handler.update_one(db, tour_id, body)
    return {"status": "success", "data": {"data": tour}}


@router.patch("/{tour_id}/images", dependencies=[Depends(tour_managers)])
async def update_tour_images(
        tour_id: str,
        image_cover: Optional[UploadFile] = File(None),
        images: Optional[List[UploadFile]] = File(None),
        db: AsyncSession = Depends(get_db),
):
    images = [image for image in images or [] if image.filename]
    if image_cover is not None and not image_cover.filename:
        image_cover = None

    if image_cover is None and not images:
        raise ValidationFailed("Invalid input data. Please upload an image_cover and/or images")
    if len(images) > MAX_TOUR_IMAGES:
        raise ValidationFailed(f"Invalid input data. A tour can have at most {MAX_TOUR_IMAGES} images")

    # 404 before anything touches the disk
    await tour_handler.find(db, tour_id)

    values: Dict[str, Any] = {}
    async with stored_images() as written:
        if image_cover is not None:
            values["image_cover"] = await save_upload(
                image_cover, TOUR_IMAGE_SIZE, "tours", image_filename("tour", tour_id, "cover"), written,
            )
        if images:
            values["images"] = [
                await save_upload(image, TOUR_IMAGE_SIZE, "tours", image_filename("tour", tour_id, str(i)), written)
                for i, image in enumerate(images, start=1)
            ]
        tour = await tour_handler.update_one(db, tour_id, values)

    return {"status": "success", "data": {"data": tour}}


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(tour_managers)])
async def delete_tour(
        tour_id: str,
        db: AsyncSession = Depends(get_db),
):
    await tour_handler.delete_one(db, tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tour_id}/reviews", dependencies=[Depends(protect)])
async def get_tour_reviews(
        tour_id: str,
        request: Request,
        db: AsyncSession = Depends(get_db),
):
    if not Base.is_valid_sid(tour_id):
        raise QueryCastError("tour_sid", tour_id)
    reviews = await review_handler.list(
        db, request.query_params.multi_items(), extra_filters=[Review.tour_sid == tour_id],
    )
    return _listing(reviews)


@router.post("/{tour_id}/reviews", status_code=status.HTTP_201_CREATED)
async def create_tour_review(
        tour_id: str,
        body: Dict[str, Any],
        current_user: User = Depends(restrict_to("user")),
        db: AsyncSession = Depends(get_db),
):
    review = await create_review(db, body, tour_id, current_user)
    return {"status": "success", "data": {"data": review}}
