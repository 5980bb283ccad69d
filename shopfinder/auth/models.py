from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2, max_length=100)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: str
    avatar_url: str | None = None
    last_login_at: datetime | None = None
    favorite_count: int = 0
    review_count: int = 0
