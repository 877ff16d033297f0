# app/models/users.py
from sqlalchemy import Column, String, Boolean, Text, Enum, DateTime
from datetime import datetime, timezone
from typing import Optional
from app.models.base import Base
import enum


class UserRole(str, enum.Enum):
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    photo = Column(String, default="default.jpg", nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), default=UserRole.USER, nullable=False)
    password_hash = Column(Text, nullable=False)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    def changed_password_after(self, token_issued_at: float) -> bool:
        """True when the password changed after a token issued at `token_issued_at` (fractional epoch seconds)"""
        changed_at = _as_utc(self.password_changed_at)
        if changed_at is None:
            return False
        return token_issued_at < changed_at.timestamp()

    def reset_token_is_live(self, now: Optional[datetime] = None) -> bool:
        expires = _as_utc(self.password_reset_expires)
        if not self.password_reset_token or expires is None:
            return False
        return expires > (now or datetime.now(timezone.utc))
