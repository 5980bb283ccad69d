from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

from ..reviews.models import ReviewOut

_TIME_PATTERN = r"^([01]\d|2[0-4]):[0-5]\d$"


class OpeningHoursIn(BaseModel):
    weekday: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    open_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    close_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    note: str | None = None


def _unique_weekdays(hours: list[OpeningHoursIn]) -> list[OpeningHoursIn]:
    """One entry per weekday; the table allows a single row per (shop, weekday)."""
    seen: set[int] = set()
    for entry in hours:
        if entry.weekday in seen:
            raise ValueError(f"weekday {entry.weekday} is listed more than once")
        seen.add(entry.weekday)
    return hours


class OpeningHoursList(RootModel[list[OpeningHoursIn]]):
    """Request body that replaces a shop's whole week."""

    @field_validator("root")
    @classmethod
    def _no_repeated_weekday(cls, value: list[OpeningHoursIn]) -> list[OpeningHoursIn]:
        return _unique_weekdays(value)


class OpeningHoursOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    weekday: int
    open_time: str | None = None
    close_time: str | None = None
    note: str | None = None


class PhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    thumbnail_url: str | None = None
    category: str
    is_primary: bool
    sort_order: int
    alt_text: str | None = None


class CityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    lat: float
    lng: float

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def _decimal_to_float(cls, value):
        return float(value) if isinstance(value, Decimal) else value


class ShopOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    lat: float
    lng: float
    street: str
    city: str
    zip: str | None = None
    phone: str | None = None
    website: str | None = None
    price_level: int | None = None
    halal: bool
    veg: bool
    meat_type: str | None = None
    has_offers: bool
    offers: list[str] = Field(default_factory=list)
    has_delivery: bool
    delivery_fee: float | None = None
    min_delivery_order: float | None = None
    delivery_radius: int | None = None
    google_rating: float | None = None

    @field_validator("lat", "lng", "delivery_fee", "min_delivery_order", "google_rating", mode="before")
    @classmethod
    def _decimal_to_float(cls, value):
        return float(value) if isinstance(value, Decimal) else value

    @field_validator("offers", mode="before")
    @classmethod
    def _split_offers(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [line.strip() for line in value.splitlines() if line.strip()]
        return value


class ShopDetail(ShopOut):
    opening_hours: list[OpeningHoursOut] = Field(default_factory=list)
    reviews: list[ReviewOut] = Field(default_factory=list)
    photos: list[PhotoOut] = Field(default_factory=list)
    avg_rating: float = 0.0
    review_count: int = 0
    is_open: bool = False
    status_text: str = ""
    is_favorited: bool | None = None


class RankedShop(ShopDetail):
    distance: int | None = Field(default=None, description="Meters from the reference point")


class ShopCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: str | None = Field(default=None, pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    zip: str | None = None
    phone: str | None = None
    website: str | None = None
    price_level: int | None = Field(default=None, ge=1, le=4)
    halal: bool = False
    veg: bool = False
    meat_type: str | None = None
    is_published: bool = True
    has_offers: bool = False
    offers: list[str] = Field(default_factory=list)
    has_delivery: bool = False
    delivery_fee: float | None = Field(default=None, ge=0)
    min_delivery_order: float | None = Field(default=None, ge=0)
    delivery_radius: int | None = Field(default=None, ge=0)
    opening_hours: list[OpeningHoursIn] = Field(default_factory=list)

    @field_validator("opening_hours")
    @classmethod
    def _no_repeated_weekday(cls, value: list[OpeningHoursIn]) -> list[OpeningHoursIn]:
        return _unique_weekdays(value)


class ShopUpdate(BaseModel):
    """Partial update; the slug is deliberately absent and never changes."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    street: str | None = None
    city: str | None = None
    zip: str | None = None
    phone: str | None = None
    website: str | None = None
    price_level: int | None = Field(default=None, ge=1, le=4)
    halal: bool | None = None
    veg: bool | None = None
    meat_type: str | None = None
    is_published: bool | None = None
    has_offers: bool | None = None
    offers: list[str] | None = None
    has_delivery: bool | None = None
    delivery_fee: float | None = Field(default=None, ge=0)
    min_delivery_order: float | None = Field(default=None, ge=0)
    delivery_radius: int | None = Field(default=None, ge=0)
