# app/scripts/import_dev_data.py
"""
Loads or wipes development data.

    python -m app.scripts.import_dev_data --import dev-data
    python -m app.scripts.import_dev_data --delete

The directory holds tours.json, users.json and reviews.json, each a list of
records using the API field names. Users carry a plain `password`; reviews and
tour guides refer to other records by `sid`.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash
from app.db.session import AsyncSessionLocal, engine
from app.models.base import Base
from app.models.tours import Tour, Review, tour_guides
from app.models.users import User, UserRole
from app.schemas.tour import TourCreate
from app.services.reviews import calc_average_ratings
from app.services.tours import slugify


def load_records(directory: Path, name: str) -> List[Dict[str, Any]]:
    with open(directory / name, encoding="utf-8") as f:
        return json.load(f)


def build_user(record: Dict[str, Any]) -> User:
    return User(
        sid=record.get("sid") or Base.generate_sid(),
        name=record["name"],
        email=record["email"].strip().lower(),
        photo=record.get("photo") or "default.jpg",
        role=UserRole(record.get("role", "user")),
        password_hash=get_password_hash(record["password"]),
        active=record.get("active", True),
    )


def build_tour(record: Dict[str, Any], users: Dict[str, User]) -> Tour:
    values = TourCreate.model_validate(record).model_dump(mode="json")
    guides = [users[sid] for sid in values.pop("guides")]
    return Tour(
        sid=record.get("sid") or Base.generate_sid(),
        slug=slugify(values["name"]),
        guides=guides,
        **values,
    )


async def import_data(db: AsyncSession, directory: Path) -> None:
    users = {}
    for record in load_records(directory, "users.json"):
        user = build_user(record)
        users[user.sid] = user
        db.add(user)

    tours = [build_tour(record, users) for record in load_records(directory, "tours.json")]
    db.add_all(tours)
    await db.flush()

    for record in load_records(directory, "reviews.json"):
        db.add(Review(
            sid=record.get("sid") or Base.generate_sid(),
            review=record["review"],
            rating=record["rating"],
            tour_sid=record["tour_sid"],
            user_sid=record["user_sid"],
        ))
    await db.commit()

    for tour in tours:
        await calc_average_ratings(db, tour.sid)

    logger.info(f"Loaded {len(users)} users and {len(tours)} tours")


async def delete_data(db: AsyncSession) -> None:
    await db.execute(delete(Review))
    await db.execute(delete(tour_guides))
    await db.execute(delete(Tour))
    await db.execute(delete(User))
    await db.commit()
    logger.info("Data deleted")


async def count_tours(db: AsyncSession) -> int:
    result = await db.execute(select(Tour.id))
    return len(result.all())


async def run(args: argparse.Namespace) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        if args.delete:
            await delete_data(db)
        else:
            if await count_tours(db):
                logger.warning("Tours already present, run --delete first to reload")
                return
            await import_data(db, Path(args.directory))

    await engine.dispose()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Load or wipe development data")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="load", action="store_true", help="load the json files")
    action.add_argument("--delete", action="store_true", help="delete all tours, users and reviews")
    parser.add_argument("directory", nargs="?", default="dev-data")
    args = parser.parse_args(argv)

    try:
        asyncio.run(run(args))
    except Exception:
        logger.exception("Dev data command failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
