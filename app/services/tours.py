# app/services/tours.py
import re
import unicodedata
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationFailed
from app.db.session import run_with_timeout
from app.models.tours import Tour
from app.models.users import User
from app.services import geo

TOP_TOURS_ALIAS = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,difficulty",
}


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^\w\s-]", "", value.lower())
    return re.sub(r"[-\s_]+", "-", value).strip("-")


def visible_tours() -> List[Any]:
    """Secret tours never show up in reads"""
    return [Tour.secret_tour.is_(False)]


async def tour_before_write(db: AsyncSession, values: Dict[str, Any], tour: Optional[Tour]) -> Dict[str, Any]:
    if "name" in values:
        values["slug"] = slugify(values["name"])

    if "guides" in values:
        sids = list(dict.fromkeys(values["guides"] or []))
        guides = []
        if sids:
            result = await run_with_timeout(db.execute(
                select(User).where(User.sid.in_(sids), User.active.is_(True))
            ))
            found = {user.sid: user for user in result.scalars().all()}
            missing = [sid for sid in sids if sid not in found]
            if missing:
                raise ValidationFailed(f"Invalid input data. No guide found with id: {', '.join(missing)}")
            guides = [found[sid] for sid in sids]
        values["guides"] = guides

    return values


def apply_alias(params: List[tuple], alias: Dict[str, str]) -> List[tuple]:
    """Overrides the paging/shaping keys of a query with a fixed alias"""
    return [(k, v) for k, v in params if k not in alias] + list(alias.items())


async def get_tour_stats(db: AsyncSession) -> List[Dict[str, Any]]:
    avg_price = func.avg(Tour.price)
    stmt = (
        select(
            Tour.difficulty,
            func.sum(Tour.ratings_quantity),
            func.count(Tour.id),
            func.avg(Tour.ratings_average),
            avg_price,
            func.min(Tour.price),
            func.max(Tour.price),
        )
        .where(Tour.ratings_average >= 4.5, *visible_tours())
        .group_by(Tour.difficulty)
        .order_by(avg_price)
    )
    result = await run_with_timeout(db.execute(stmt))

    stats = []
    for difficulty, num_ratings, num_tours, avg_rating, avg_price_value, min_price, max_price in result.all():
        stats.append({
            "difficulty": getattr(difficulty, "value", difficulty).upper(),
            "num_tours": num_tours,
            "num_ratings": num_ratings or 0,
            "avg_rating": round(float(avg_rating), 2),
            "avg_price": round(float(avg_price_value), 2),
            "min_price": min_price,
            "max_price": max_price,
        })
    return stats


async def get_monthly_plan(db: AsyncSession, year: int) -> List[Dict[str, Any]]:
    result = await run_with_timeout(db.execute(
        select(Tour.name, Tour.start_dates).where(*visible_tours()).order_by(Tour.name)
    ))

    months = defaultdict(list)
    for name, start_dates in result.all():
        for raw in start_dates or []:
            start = datetime.fromisoformat(raw) if isinstance(raw, str) else raw
            if start.year == year:
                months[start.month].append(name)

    plan = [
        {"month": month, "num_tour_starts": len(names), "tours": names}
        for month, names in months.items()
    ]
    plan.sort(key=lambda item: (-item["num_tour_starts"], item["month"]))
    return plan[:12]


async def _located_tours(db: AsyncSession) -> List[Tour]:
    result = await run_with_timeout(db.execute(
        select(Tour).where(Tour.start_location.is_not(None), *visible_tours())
    ))
    return list(result.scalars().all())


async def get_tours_within(db: AsyncSession, distance: float, latlng: str, unit: str) -> List[Tour]:
    lat, lng = geo.parse_latlng(latlng)
    geo.check_unit(unit)
    if distance < 0:
        raise ValidationFailed("Invalid input data. distance must not be negative")

    tours = await _located_tours(db)
    return [tour for tour in tours if geo.within_radius(tour.start_location, lat, lng, distance, unit)]


async def get_distances(db: AsyncSession, latlng: str, unit: str) -> List[Dict[str, Any]]:
    lat, lng = geo.parse_latlng(latlng)
    geo.check_unit(unit)

    distances = []
    for tour in await _located_tours(db):
        distance = geo.distance_to(tour.start_location, lat, lng, unit)
        if distance is not None:
            distances.append({"sid": tour.sid, "name": tour.name, "distance": distance})
    distances.sort(key=lambda item: item["distance"])
    return distances
