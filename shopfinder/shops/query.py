"""
Shop search engine.

Pipeline for ``query_shops``:
1. Fetch every published shop matching the non-distance filters, with its
   aggregate rating, in one grouped query.
2. Order in that same query unless distance ordering was requested.
3. With a reference point, compute distances for the whole candidate set,
   apply the radius, then re-sort by distance when requested.
4. Paginate the fully filtered and ordered collection.
5. Hydrate only the page with hours, recent reviews and photos.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from ..config import DEFAULT_APP_CONFIG, AppConfig
from ..reviews.models import ReviewOut
from ..storage.repositories import CityRepository, ShopRepository
from ..storage.tables import Review, Shop
from .distance import distance_meters
from .filters import ShopFilter, SortBy
from .hours import is_open_at, status_text
from .models import CityOut, OpeningHoursOut, PhotoOut, RankedShop, ShopDetail, ShopOut

logger = logging.getLogger(__name__)


def _sql_order(sort_by: SortBy | None) -> str | None:
    if sort_by is SortBy.distance:
        return None
    if sort_by is SortBy.rating:
        return "rating"
    if sort_by is SortBy.price:
        return "price"
    return "default"


def _detail_fields(
    repo: ShopRepository,
    shop: Shop,
    avg_rating: float,
    review_count: int,
    reviews: Iterable[Review],
    now: datetime,
) -> dict:
    hours = [OpeningHoursOut.model_validate(h) for h in repo.fetch_opening_hours(shop.id)]
    return {
        **ShopOut.model_validate(shop).model_dump(),
        "opening_hours": hours,
        "reviews": [ReviewOut.model_validate(r) for r in reviews],
        "photos": [PhotoOut.model_validate(p) for p in repo.fetch_photos(shop.id)],
        "avg_rating": avg_rating,
        "review_count": review_count,
        "is_open": is_open_at(hours, now),
        "status_text": status_text(hours, now),
    }


def hydrate_shop(
    session: Session,
    shop: Shop,
    *,
    review_limit: int | None,
    now: datetime | None = None,
    rating: tuple[float, int] | None = None,
) -> ShopDetail:
    """Build a ``ShopDetail`` for one shop.

    ``review_limit=None`` loads the full review history. When ``rating`` is
    not given it is computed with the standalone aggregate query.
    """
    repo = ShopRepository(session)
    now = now or datetime.now()
    avg_rating, review_count = rating if rating is not None else repo.fetch_rating_summary(shop.id)
    if review_limit is None:
        reviews = repo.fetch_all_reviews(shop.id)
    else:
        reviews = repo.fetch_recent_reviews(shop.id, review_limit)
    return ShopDetail(**_detail_fields(repo, shop, avg_rating, review_count, reviews, now))


def query_shops(
    session: Session,
    shop_filter: ShopFilter,
    *,
    now: datetime | None = None,
    config: AppConfig = DEFAULT_APP_CONFIG,
) -> list[RankedShop]:
    start_time = time.time()
    now = now or datetime.now()
    repo = ShopRepository(session)

    # --- Steps 1 + 2: candidate fetch with aggregate rating and SQL ordering ---
    rows = repo.fetch_published_shops(
        city=shop_filter.city,
        halal=shop_filter.halal,
        veg=shop_filter.veg,
        has_offers=shop_filter.has_offers,
        has_delivery=shop_filter.has_delivery,
        order=_sql_order(shop_filter.sort_by),
    )
    total_candidates = len(rows)

    # --- Step 3: distance, radius, distance ordering on the full set ---
    candidates: list[tuple[Shop, float, int, int | None]]
    if shop_filter.has_reference_point:
        candidates = [
            (
                shop,
                avg_rating,
                review_count,
                distance_meters(shop_filter.lat, shop_filter.lng, float(shop.lat), float(shop.lng)),
            )
            for shop, avg_rating, review_count in rows
        ]
        if shop_filter.radius is not None:
            candidates = [c for c in candidates if c[3] <= shop_filter.radius]
        if shop_filter.sort_by is SortBy.distance:
            # Stable: equal distances keep the id order from step 2
            candidates.sort(key=lambda c: c[3])
    else:
        candidates = [(shop, avg_rating, review_count, None) for shop, avg_rating, review_count in rows]

    # --- Step 4: paginate only after every filter and ordering ---
    page = candidates[shop_filter.offset:shop_filter.offset + shop_filter.limit]

    # --- Step 5: per-shop hydration of the page ---
    results: list[RankedShop] = []
    for shop, avg_rating, review_count, distance in page:
        reviews = repo.fetch_recent_reviews(shop.id, config.recent_review_limit)
        fields = _detail_fields(repo, shop, avg_rating, review_count, reviews, now)
        results.append(RankedShop(**fields, distance=distance))

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    logger.info(
        "Shop query city=%s sort=%s candidates=%d matched=%d returned=%d in %.1fms",
        shop_filter.city,
        shop_filter.sort_by.value if shop_filter.sort_by else "default",
        total_candidates,
        len(candidates),
        len(results),
        elapsed_ms,
    )
    return results


def get_shop_by_slug(session: Session, slug: str, *, now: datetime | None = None) -> ShopDetail | None:
    """Full detail view: all hours, the whole review history, all photos."""
    shop = ShopRepository(session).fetch_shop_by_slug(slug)
    if shop is None:
        return None
    return hydrate_shop(session, shop, review_limit=None, now=now)


def top_shops(
    session: Session,
    city: str | None = None,
    limit: int | None = None,
    *,
    config: AppConfig = DEFAULT_APP_CONFIG,
) -> list[RankedShop]:
    shop_filter = ShopFilter(
        city=city or None,
        sort_by=SortBy.rating,
        limit=limit if limit is not None and limit >= 0 else config.top_shops_limit,
    )
    return query_shops(session, shop_filter, config=config)


def list_cities(session: Session) -> list[CityOut]:
    return [CityOut.model_validate(c) for c in CityRepository(session).list_cities()]
