# app/schemas/user.py
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class UserBase(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Please tell us your name")
        return v


class PasswordConfirmMixin(BaseModel):
    password: str = Field(..., min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class UserCreate(PasswordConfirmMixin, UserBase):
    pass


class UserLogin(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPassword(BaseModel):
    email: str


class PasswordReset(PasswordConfirmMixin):
    pass


class PasswordUpdate(PasswordConfirmMixin):
    password_current: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[UserRole] = None
    active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower() if v else v


class UserAdminWrite(UserBase):
    """Full shape of a user record as an administrator may edit it"""
    photo: str = "default.jpg"
    role: UserRole = UserRole.USER
    active: bool = True


class UserResponse(BaseModel):
    sid: str
    name: str
    email: EmailStr
    photo: Optional[str] = None
    role: UserRole

    class Config:
        from_attributes = True


class GuideResponse(BaseModel):
    sid: str
    name: str
    email: str
    photo: Optional[str] = None
    role: UserRole

    class Config:
        from_attributes = True


class ReviewAuthor(BaseModel):
    sid: str
    name: str
    photo: Optional[str] = None

    class Config:
        from_attributes = True
