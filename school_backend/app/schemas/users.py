"""
User management schemas.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional
from school_backend.app.core.security import PASSWORD_RULE, is_strong_password
from school_backend.app.models.enums import UserRole


def _strong(value: str) -> str:
    if not is_strong_password(value):
        raise ValueError(PASSWORD_RULE)
    return value


class UserListItem(BaseModel):
    """Schema for user in list response."""
    id: int
    username: str
    role: UserRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str
    role: UserRole

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _strong(value)


class UserCreatedResponse(BaseModel):
    message: str
    user: UserListItem


class PasswordReset(BaseModel):
    """Admin sets another user's password."""
    password: str

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _strong(value)


class PasswordChange(BaseModel):
    """User changes their own password."""
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _strong(value)


class MessageResponse(BaseModel):
    message: str
    id: Optional[int] = None
