"""
Admin API Schema Definitions.

Pydantic schemas for admin endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List


class ClassCount(BaseModel):
    class_enrolled: str
    count: int


class GenderCount(BaseModel):
    sex: str
    count: int


class StatsResponse(BaseModel):
    """Dashboard statistics over non-deleted records."""
    model_config = ConfigDict(populate_by_name=True)

    total: int
    by_class: List[ClassCount] = Field(..., serialization_alias="byClass")
    by_gender: List[GenderCount] = Field(..., serialization_alias="byGender")


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    action: str
    user_id: Optional[int]
    username: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    method: Optional[str]
    path: Optional[str]
    status_code: Optional[int]
    details: Optional[dict]
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class SecurityAlert(BaseModel):
    """Failed logins grouped by (username, ip)."""
    username: Optional[str]
    ip_address: Optional[str]
    attempts: int
    last_attempt: datetime
