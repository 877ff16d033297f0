# app/models/tours.py
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Enum, Text, Boolean, JSON, Table, \
    UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
from app.models.base import Base


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"


tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_sid", String(22), ForeignKey("tour.sid", ondelete="CASCADE"), primary_key=True),
    Column("user_sid", String(22), ForeignKey("user.sid", ondelete="CASCADE"), primary_key=True),
)


class Tour(Base):
    __table_args__ = (
        Index("ix_tour_price_ratings_average", "price", "ratings_average"),
    )

    name = Column(String(40), unique=True, nullable=False)
    slug = Column(String, index=True)
    secret_tour = Column(Boolean, default=False, nullable=False)
    duration = Column(Integer, nullable=False)
    max_group_size = Column(Integer, nullable=False)
    difficulty = Column(Enum(Difficulty, values_callable=lambda e: [m.value for m in e]), nullable=False)
    ratings_average = Column(Float, default=4.5, nullable=False)
    ratings_quantity = Column(Integer, default=0, nullable=False)
    price = Column(Float, nullable=False)
    price_discount = Column(Float, nullable=True)
    summary = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    image_cover = Column(String, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    start_dates = Column(JSON, default=list, nullable=False)
    # {"type": "Point", "coordinates": [lng, lat], "address": ..., "description": ...}
    start_location = Column(JSON(none_as_null=True), nullable=True)
    locations = Column(JSON, default=list, nullable=False)

    guides = relationship("User", secondary=tour_guides, lazy="selectin")
    reviews = relationship("Review", back_populates="tour", cascade="all, delete-orphan", passive_deletes=True)


class Review(Base):
    __table_args__ = (
        UniqueConstraint("tour_sid", "user_sid", name="uq_review_tour_user"),
    )

    review = Column(Text, nullable=False)
    rating = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    tour_sid = Column(String(22), ForeignKey("tour.sid", ondelete="CASCADE"), nullable=False, index=True)
    tour = relationship("Tour", back_populates="reviews")
    user_sid = Column(String(22), ForeignKey("user.sid", ondelete="CASCADE"), nullable=False, index=True)
    user = relationship("User", lazy="selectin")
