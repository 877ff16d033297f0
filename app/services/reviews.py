# app/services/reviews.py
from loguru import logger
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import run_with_timeout
from app.models.tours import Tour, Review

DEFAULT_RATINGS_AVERAGE = 4.5


async def calc_average_ratings(db: AsyncSession, tour_sid: str) -> None:
    """Recomputes ratings_quantity and ratings_average of a tour from its reviews"""
    result = await run_with_timeout(db.execute(
        select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_sid == tour_sid)
    ))
    quantity, average = result.one()

    if quantity:
        values = {"ratings_quantity": quantity, "ratings_average": round(float(average) * 10) / 10}
    else:
        values = {"ratings_quantity": 0, "ratings_average": DEFAULT_RATINGS_AVERAGE}

    await run_with_timeout(db.execute(update(Tour).where(Tour.sid == tour_sid).values(**values)))
    await run_with_timeout(db.commit())
    logger.debug(f"Tour {tour_sid} ratings: {values}")


async def review_after_write(db: AsyncSession, review: Review, action: str) -> None:
    await calc_average_ratings(db, review.tour_sid)
