from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

ANONYMOUS_AUTHOR_NAME = "Anonymer Nutzer"


@dataclass(frozen=True)
class AuthenticatedIdentity:
    user_id: int
    display_name: str | None = None


@dataclass(frozen=True)
class AnonymousIdentity:
    user_hash: str


# Exactly one of the two; stored as the nullable user_id / user_hash pair.
ReviewIdentity = Union[AuthenticatedIdentity, AnonymousIdentity]


class ReviewCreate(BaseModel):
    shop_id: int
    rating: int = Field(..., ge=1, le=5)
    text: str = Field(..., max_length=2000)


class ReviewUpdate(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    text: str | None = Field(default=None, max_length=2000)


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shop_id: int
    user_id: int | None = None
    rating: int
    text: str
    author_name: str | None = None
    is_anonymous: bool
    is_edited: bool
    edited_at: datetime | None = None
    created_at: datetime
