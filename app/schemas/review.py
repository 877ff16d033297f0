# app/schemas/review.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.schemas.user import ReviewAuthor
from app.schemas.tour import TourResponse


class ReviewCreate(BaseModel):
    review: str = Field(..., min_length=1)
    rating: float = Field(..., ge=1, le=5)
    tour_sid: str
    user_sid: str


class ReviewUpdate(BaseModel):
    review: Optional[str] = None
    rating: Optional[float] = None


class ReviewResponse(BaseModel):
    sid: str
    review: str
    rating: float
    created_at: Optional[datetime] = None
    tour_sid: str
    user: Optional[ReviewAuthor] = None

    class Config:
        from_attributes = True


class TourWithReviewsResponse(TourResponse):
    reviews: list[ReviewResponse] = []
