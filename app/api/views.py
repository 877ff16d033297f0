# app/api/views.py
from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from typing import Optional

from app.api.templating import templates
from app.api.v1.users import user_handler
from app.core.dependencies import is_logged_in, protect
from app.core.exceptions import NotFound
from app.db.session import get_db, run_with_timeout
from app.models.tours import Tour, Review
from app.models.users import User
from app.services.tours import visible_tours

router = APIRouter(include_in_schema=False)


@router.get("/")
async def overview(
        request: Request,
        user: Optional[User] = Depends(is_logged_in),
        db: AsyncSession = Depends(get_db),
):
    result = await run_with_timeout(db.execute(
        select(Tour).where(*visible_tours()).order_by(Tour.created_at.desc(), Tour.sid)
    ))
    return templates.TemplateResponse(
        request,
        "overview.html",
        {"title": "All Tours", "tours": result.scalars().all(), "user": user},
    )


@router.get("/tour/{slug}")
async def tour_detail(
        slug: str,
        request: Request,
        user: Optional[User] = Depends(is_logged_in),
        db: AsyncSession = Depends(get_db),
):
    result = await run_with_timeout(db.execute(
        select(Tour)
        .options(selectinload(Tour.reviews).selectinload(Review.user))
        .where(Tour.slug == slug, *visible_tours())
    ))
    tour = result.scalars().first()
    if tour is None:
        raise NotFound("There is no tour with that name.")

    return templates.TemplateResponse(
        request,
        "tour.html",
        {"title": f"{tour.name} Tour", "tour": tour, "user": user},
    )


@router.get("/login")
async def login_form(
        request: Request,
        user: Optional[User] = Depends(is_logged_in),
):
    return templates.TemplateResponse(request, "login.html", {"title": "Log into your account", "user": user})


@router.get("/me")
async def account(
        request: Request,
        user: User = Depends(protect),
):
    return templates.TemplateResponse(request, "account.html", {"title": "Your account", "user": user})


@router.post("/submit-user-data")
async def submit_user_data(
        request: Request,
        name: str = Form(...),
        email: str = Form(...),
        current_user: User = Depends(protect),
        db: AsyncSession = Depends(get_db),
):
    updated = await user_handler.update_one(db, current_user.sid, {"name": name, "email": email})
    return templates.TemplateResponse(request, "account.html", {"title": "Your account", "user": updated})
