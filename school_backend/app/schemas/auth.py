"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from school_backend.app.models.enums import UserRole


class UserLogin(BaseModel):
    """
    Schema for user login.

    Both fields are optional at the schema level so the endpoint can record
    a failed attempt before answering 400 for a missing field.
    """
    username: Optional[str] = Field(default=None, description="Username")
    password: Optional[str] = Field(default=None, description="Password")


class UserInfo(BaseModel):
    """Identity embedded in tokens and returned to clients."""
    id: int
    username: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by a successful login.
    """
    token: str = Field(..., description="JWT bearer token (24h)")
    user: UserInfo


class MeResponse(BaseModel):
    """Used by GET /auth/me."""
    user: UserInfo
