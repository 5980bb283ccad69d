from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import DEFAULT_APP_CONFIG, AppConfig
from ..errors import NotFound
from ..shops.query import hydrate_shop
from ..storage.repositories import FavoriteRepository, ShopRepository
from ..storage.tables import UserFavorite
from .models import FavoriteOut, FavoriteWithShop

logger = logging.getLogger(__name__)


def add_favorite(session: Session, user_id: int, shop_id: int) -> UserFavorite:
    """Idempotent: an existing favorite for the pair is returned as is."""
    if ShopRepository(session).get(shop_id) is None:
        raise NotFound("Shop", shop_id)

    repo = FavoriteRepository(session)
    existing = repo.find(user_id, shop_id)
    if existing is not None:
        return existing

    try:
        favorite = repo.insert(UserFavorite(user_id=user_id, shop_id=shop_id))
        session.commit()
    except IntegrityError:
        # Lost a race against an identical insert; the winner's row is the answer
        session.rollback()
        existing = repo.find(user_id, shop_id)
        if existing is None:
            raise
        return existing

    session.refresh(favorite)
    logger.info("User %s favorited shop %s", user_id, shop_id)
    return favorite


def remove_favorite(session: Session, user_id: int, shop_id: int) -> None:
    """Removing a favorite that does not exist is a no-op."""
    if FavoriteRepository(session).delete(user_id, shop_id):
        logger.info("User %s unfavorited shop %s", user_id, shop_id)
    session.commit()


def is_favorited(session: Session, user_id: int, shop_id: int) -> bool:
    return FavoriteRepository(session).find(user_id, shop_id) is not None


def favorite_shop_ids(session: Session, user_id: int) -> set[int]:
    return set(FavoriteRepository(session).shop_ids_for_user(user_id))


def list_favorites(
    session: Session,
    user_id: int,
    offset: int = 0,
    limit: int | None = None,
    *,
    now: datetime | None = None,
    config: AppConfig = DEFAULT_APP_CONFIG,
) -> list[FavoriteWithShop]:
    """Newest favorites first, each with a hydrated shop marked as favorited."""
    if limit is None:
        limit = config.favorites_page_size

    items: list[FavoriteWithShop] = []
    for favorite, shop in FavoriteRepository(session).list_for_user(user_id, offset, limit):
        detail = hydrate_shop(session, shop, review_limit=config.recent_review_limit, now=now)
        detail.is_favorited = True
        items.append(FavoriteWithShop(**FavoriteOut.model_validate(favorite).model_dump(), shop=detail))
    return items
