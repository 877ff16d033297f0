# app/schemas/tour.py
from pydantic import BaseModel, Field, field_validator, model_validator, computed_field
from typing import Optional, List, Literal
from datetime import datetime
from enum import Enum

from app.schemas.user import GuideResponse


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"


class Location(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2)
    address: Optional[str] = None
    description: Optional[str] = None
    day: Optional[int] = None

    @field_validator("coordinates")
    @classmethod
    def coordinates_in_range(cls, v):
        lng, lat = v
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            raise ValueError("Coordinates must be [longitude, latitude]")
        return v


class TourCreate(BaseModel):
    name: str = Field(..., min_length=10, max_length=40)
    duration: int = Field(..., gt=0)
    max_group_size: int = Field(..., gt=0)
    difficulty: Difficulty
    ratings_average: float = Field(4.5, ge=1, le=5)
    ratings_quantity: int = Field(0, ge=0)
    price: float = Field(..., ge=0)
    price_discount: Optional[float] = None
    summary: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_cover: str
    images: List[str] = []
    start_dates: List[datetime] = []
    start_location: Optional[Location] = None
    locations: List[Location] = []
    secret_tour: bool = False
    guides: List[str] = []

    @field_validator("name", "summary", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("ratings_average")
    @classmethod
    def round_rating(cls, v):
        return round(v * 10) / 10

    @model_validator(mode="after")
    def discount_below_price(self):
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(f"Discount price ({self.price_discount}) should be below regular price")
        return self


class TourUpdate(BaseModel):
    name: Optional[str] = None
    duration: Optional[int] = None
    max_group_size: Optional[int] = None
    difficulty: Optional[Difficulty] = None
    ratings_average: Optional[float] = None
    ratings_quantity: Optional[int] = None
    price: Optional[float] = None
    price_discount: Optional[float] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    image_cover: Optional[str] = None
    images: Optional[List[str]] = None
    start_dates: Optional[List[datetime]] = None
    start_location: Optional[Location] = None
    locations: Optional[List[Location]] = None
    secret_tour: Optional[bool] = None
    guides: Optional[List[str]] = None


class TourResponse(BaseModel):
    sid: str
    name: str
    slug: Optional[str] = None
    duration: int
    max_group_size: int
    difficulty: Difficulty
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: Optional[float] = None
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: List[str] = []
    created_at: Optional[datetime] = None
    start_dates: List[datetime] = []
    start_location: Optional[Location] = None
    locations: List[Location] = []
    guides: List[GuideResponse] = []

    @computed_field
    @property
    def duration_weeks(self) -> float:
        return self.duration / 7

    class Config:
        from_attributes = True
