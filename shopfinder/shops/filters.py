"""
Typed shop-list filter and its coercion from raw query parameters.

The query engine only ever sees a validated ``ShopFilter``; all string
parsing of untrusted request input happens in ``parse_shop_filter``.
"""
from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..config import DEFAULT_APP_CONFIG, AppConfig
from ..errors import InvalidFilter

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes"}


class SortBy(str, Enum):
    rating = "rating"
    price = "price"
    distance = "distance"


class ShopFilter(BaseModel):
    city: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    radius: float | None = Field(default=None, ge=0, description="Meters; ignored without lat/lng")
    open_now: bool = False
    # Flags only filter when True; False means "don't care", never "must not".
    halal: bool = False
    veg: bool = False
    has_offers: bool = False
    has_delivery: bool = False
    sort_by: SortBy | None = None
    limit: int = Field(default=50, ge=0)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _reference_point_complete(self) -> "ShopFilter":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be supplied together")
        return self

    @property
    def has_reference_point(self) -> bool:
        return self.lat is not None and self.lng is not None


def _parse_float(raw: str | None) -> float | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _garbled(raw: str | None, parsed: float | None) -> bool:
    return parsed is None and raw is not None and raw.strip() != ""


def _parse_int(raw: str | None) -> int | None:
    value = _parse_float(raw)
    return int(value) if value is not None else None


def _parse_flag(raw: str | None) -> bool:
    return raw is not None and raw.strip().lower() in _TRUE_VALUES


def _parse_sort(raw: str | None) -> SortBy | None:
    if not raw:
        return None
    try:
        return SortBy(raw.strip().lower())
    except ValueError:
        return None


def parse_shop_filter(params: Mapping[str, str], config: AppConfig = DEFAULT_APP_CONFIG) -> ShopFilter:
    """Coerce raw query parameters into a ``ShopFilter``.

    Unparsable optional numbers are dropped rather than rejected. A garbled
    coordinate drops the whole reference point. Only a reference point that
    cannot be honoured (one coordinate missing or out of range) raises
    ``InvalidFilter``.
    """
    limit = _parse_int(params.get("limit"))
    if limit is None or limit < 0:
        limit = config.default_page_size
    limit = min(limit, config.max_page_size)

    offset = _parse_int(params.get("offset"))
    if offset is None or offset < 0:
        offset = 0

    radius = _parse_float(params.get("radius"))
    if radius is not None and radius < 0:
        radius = None

    city = (params.get("city") or "").strip() or None

    lat, lng = _parse_float(params.get("lat")), _parse_float(params.get("lng"))
    if _garbled(params.get("lat"), lat) or _garbled(params.get("lng"), lng):
        logger.warning("Ignoring unparsable reference point lat=%r lng=%r", params.get("lat"), params.get("lng"))
        lat = lng = None

    try:
        return ShopFilter(
            city=city,
            lat=lat,
            lng=lng,
            radius=radius,
            open_now=_parse_flag(params.get("open_now")),
            halal=_parse_flag(params.get("halal")),
            veg=_parse_flag(params.get("veg")),
            has_offers=_parse_flag(params.get("has_offers")),
            has_delivery=_parse_flag(params.get("has_delivery")),
            sort_by=_parse_sort(params.get("sort_by") or params.get("by")),
            limit=limit,
            offset=offset,
        )
    except ValidationError as exc:
        message = "; ".join(err["msg"] for err in exc.errors())
        logger.warning("Rejected shop filter: %s", message)
        raise InvalidFilter(message) from exc
