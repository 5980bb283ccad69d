from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

import pandas as pd
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..shops.admin import create_shop
from ..shops.distance import coordinates_valid
from ..shops.models import OpeningHoursIn, ShopCreate
from .config import DEFAULT_INGESTION_CONFIG, IngestionConfig

logger = logging.getLogger(__name__)

CANONICAL_COLUMNS: List[str] = [
    "name",
    "street",
    "city",
    "zip",
    "phone",
    "website",
    "lat",
    "lng",
    "price_level",
    "halal",
    "veg",
    "meat_type",
    "has_offers",
    "has_delivery",
] + [f"hours_{day}" for day in range(7)]

_FLAG_TRUE = {"1", "true", "yes", "ja", "x", "y"}
_CLOSED = {"", "-", "closed", "geschlossen", "ruhetag"}


@dataclass
class IngestionResult:
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _parse_flag(value: object) -> bool:
    return str(value).strip().lower() in _FLAG_TRUE


def _normalize_price_level(value: float | None) -> int | None:
    if value is None or pd.isna(value):
        return None
    return int(max(1, min(4, round(float(value)))))


def _parse_hours_cell(weekday: int, cell: str) -> OpeningHoursIn | None:
    """"11:00-22:00" -> open/close; a blank or "geschlossen" cell -> closed that day."""
    raw = str(cell).strip()
    if raw.lower() in _CLOSED:
        return OpeningHoursIn(weekday=weekday)
    if "-" not in raw:
        return None
    open_time, close_time = (part.strip() for part in raw.split("-", 1))
    if len(open_time) == 4:
        open_time = "0" + open_time
    if len(close_time) == 4:
        close_time = "0" + close_time
    try:
        return OpeningHoursIn(weekday=weekday, open_time=open_time, close_time=close_time)
    except ValidationError:
        return None


def load_shop_frame(config: IngestionConfig = DEFAULT_INGESTION_CONFIG) -> pd.DataFrame:
    """Read the CSV and normalize it into the canonical column set."""
    df = pd.read_csv(config.source_path, dtype=str, keep_default_na=False)

    canonical = pd.DataFrame(index=df.index)
    for col in CANONICAL_COLUMNS:
        canonical[col] = df[col].str.strip() if col in df.columns else ""

    if config.default_city:
        canonical.loc[canonical["city"] == "", "city"] = config.default_city

    canonical["lat"] = pd.to_numeric(canonical["lat"].str.replace(",", "."), errors="coerce")
    canonical["lng"] = pd.to_numeric(canonical["lng"].str.replace(",", "."), errors="coerce")
    canonical["price_level"] = pd.to_numeric(canonical["price_level"], errors="coerce").apply(
        _normalize_price_level
    )
    for flag in ("halal", "veg", "has_offers", "has_delivery"):
        canonical[flag] = canonical[flag].apply(_parse_flag)

    return canonical[CANONICAL_COLUMNS]


def _row_to_payload(row: pd.Series, publish: bool) -> ShopCreate:
    hours = []
    # A row without any hours leaves them unknown instead of closed all week
    has_hours = any(str(row[f"hours_{day}"]).strip() for day in range(7))
    for day in range(7 if has_hours else 0):
        entry = _parse_hours_cell(day, row[f"hours_{day}"])
        if entry is not None:
            hours.append(entry)

    price_level = row["price_level"]
    return ShopCreate(
        name=row["name"],
        street=row["street"],
        city=row["city"],
        zip=row["zip"] or None,
        phone=row["phone"] or None,
        website=row["website"] or None,
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        price_level=None if pd.isna(price_level) else int(price_level),
        halal=bool(row["halal"]),
        veg=bool(row["veg"]),
        meat_type=row["meat_type"] or None,
        has_offers=bool(row["has_offers"]),
        has_delivery=bool(row["has_delivery"]),
        is_published=publish,
        opening_hours=hours,
    )


def run_ingestion(session: Session, config: IngestionConfig = DEFAULT_INGESTION_CONFIG) -> IngestionResult:
    """
    Import shops from a CSV file.

    Steps:
    - Load and normalize the CSV with pandas.
    - Skip rows without a name, street, city or usable coordinates.
    - Create each remaining shop with its opening hours.
    """
    df = load_shop_frame(config)
    result = IngestionResult()

    for index, row in df.iterrows():
        label = row["name"] or f"row {index}"
        if not row["name"] or not row["street"] or not row["city"]:
            logger.warning("Skipping %s: name, street and city are required", label)
            result.skipped.append(label)
            continue
        if not coordinates_valid(row["lat"], row["lng"]):
            logger.warning("Skipping %s: invalid coordinates", label)
            result.skipped.append(label)
            continue

        try:
            payload = _row_to_payload(row, config.publish)
        except ValidationError as exc:
            logger.warning("Skipping %s: %s", label, exc.errors()[0]["msg"])
            result.skipped.append(label)
            continue

        shop = create_shop(session, payload, data_source="import")
        result.created.append(shop.slug)

    logger.info("Import finished: %d created, %d skipped", len(result.created), len(result.skipped))
    return result


if __name__ == "__main__":
    from ..database import get_db_context, init_db

    logging.basicConfig(level=logging.INFO)
    init_db()
    with get_db_context() as db:
        outcome = run_ingestion(db)
    print(f"Import complete. Created {len(outcome.created)} shops, skipped {len(outcome.skipped)}.")
