from __future__ import annotations

import logging
import re

from sqlalchemy.orm import Session

from ..errors import NotFound
from ..storage.repositories import ShopRepository
from ..storage.tables import OpeningHours, Shop
from .models import OpeningHoursIn, ShopCreate, ShopUpdate

logger = logging.getLogger(__name__)

_UMLAUTS = {"ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss"}

# Explicit nulls for these are ignored on update
_REQUIRED_COLUMNS = {
    "name", "lat", "lng", "street", "city", "halal", "veg",
    "is_published", "has_offers", "has_delivery",
}


def generate_slug(name: str) -> str:
    """URL-safe slug: lower-case, German umlauts spelled out, dashes between words."""
    slug = name.lower()
    slug = re.sub(r"[äöüß]", lambda m: _UMLAUTS[m.group(0)], slug)
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


def _unique_slug(repo: ShopRepository, base: str) -> str:
    base = base or "shop"
    slug, n = base, 2
    while repo.slug_exists(slug):
        slug = f"{base}-{n}"
        n += 1
    return slug


def _hours_rows(shop_id: int, hours: list[OpeningHoursIn]) -> list[OpeningHours]:
    return [
        OpeningHours(
            shop_id=shop_id,
            weekday=h.weekday,
            open_time=h.open_time,
            close_time=h.close_time,
            note=h.note,
        )
        for h in hours
    ]


def create_shop(session: Session, payload: ShopCreate, data_source: str = "manual") -> Shop:
    repo = ShopRepository(session)
    data = payload.model_dump(exclude={"opening_hours", "slug", "offers"})
    slug = _unique_slug(repo, payload.slug or generate_slug(payload.name))

    shop = repo.add(Shop(
        **data,
        slug=slug,
        offers="\n".join(payload.offers) or None,
        data_source=data_source,
    ))
    if payload.opening_hours:
        repo.replace_opening_hours(shop.id, _hours_rows(shop.id, payload.opening_hours))

    session.commit()
    session.refresh(shop)
    logger.info("Created shop %s (%s)", shop.id, shop.slug)
    return shop


def update_shop(session: Session, shop_id: int, payload: ShopUpdate) -> Shop:
    repo = ShopRepository(session)
    shop = repo.get(shop_id)
    if shop is None:
        raise NotFound("Shop", shop_id)

    updates = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in _REQUIRED_COLUMNS
    }
    if "offers" in updates:
        updates["offers"] = "\n".join(updates["offers"] or []) or None
    for key, value in updates.items():
        setattr(shop, key, value)

    session.commit()
    session.refresh(shop)
    logger.info("Updated shop %s fields=%s", shop_id, sorted(updates))
    return shop


def replace_opening_hours(session: Session, shop_id: int, hours: list[OpeningHoursIn]) -> list[OpeningHours]:
    repo = ShopRepository(session)
    if repo.get(shop_id) is None:
        raise NotFound("Shop", shop_id)

    rows = repo.replace_opening_hours(shop_id, _hours_rows(shop_id, hours))
    session.commit()
    return sorted(rows, key=lambda r: r.weekday)


def delete_shop(session: Session, shop_id: int) -> None:
    """Delete a shop together with its hours, reviews, photos and favorites."""
    repo = ShopRepository(session)
    shop = repo.get(shop_id)
    if shop is None:
        raise NotFound("Shop", shop_id)

    repo.delete(shop)
    session.commit()
    logger.info("Deleted shop %s", shop_id)
