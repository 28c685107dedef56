"""
Authentication and trial schemas
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, validator

from .base import CamelModel


class TrialStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    EXPIRED = "expired"


class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=64)
    email: str
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None

    @validator("email")
    def email_must_look_valid(cls, v):
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v.lower()


class LoginRequest(CamelModel):
    username: str
    password: str


class UserResponse(CamelModel):
    """Public user representation. The password hash is never exposed."""

    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: str
    organization_id: Optional[int] = None
    plan_type: Optional[str] = None
    trial_status: TrialStatus
    trial_started_at: Optional[datetime] = None
    created_at: datetime


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class TrialStatusResponse(CamelModel):
    status: TrialStatus
    message: str
    days_remaining: int
    trial_started_at: Optional[datetime] = None
