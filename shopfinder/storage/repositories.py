"""
Persistence queries used by the shop, review and favorite services.

Repositories wrap a single SQLAlchemy ``Session``; they flush but never
commit, so a service decides where its transaction ends.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from .tables import City, OpeningHours, Photo, Review, Shop, User, UserFavorite

# Aggregate shared by the list query; the detail query repeats the same
# AVG/COUNT over a plain WHERE so both produce identical numbers.
_AVG_RATING = func.coalesce(func.avg(Review.rating), 0).label("avg_rating")
_REVIEW_COUNT = func.count(Review.id).label("review_count")


class ShopRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def fetch_published_shops(
        self,
        city: str | None = None,
        halal: bool = False,
        veg: bool = False,
        has_offers: bool = False,
        has_delivery: bool = False,
        order: str | None = None,
    ) -> list[tuple[Shop, float, int]]:
        """Return ``(shop, avg_rating, review_count)`` for every published match.

        Flags only filter when ``True``. ``order`` is ``"rating"``,
        ``"price"``, ``"default"`` or ``None`` (no ordering beyond shop id).
        """
        stmt = (
            select(Shop, _AVG_RATING, _REVIEW_COUNT)
            .outerjoin(Review, Review.shop_id == Shop.id)
            .where(Shop.is_published.is_(True))
            .group_by(Shop.id)
        )
        if city:
            stmt = stmt.where(Shop.city == city)
        if halal:
            stmt = stmt.where(Shop.halal.is_(True))
        if veg:
            stmt = stmt.where(Shop.veg.is_(True))
        if has_offers:
            stmt = stmt.where(Shop.has_offers.is_(True))
        if has_delivery:
            stmt = stmt.where(Shop.has_delivery.is_(True))

        price_asc = (Shop.price_level.is_(None), Shop.price_level.asc())
        if order == "rating":
            stmt = stmt.order_by(_AVG_RATING.desc())
        elif order == "price":
            stmt = stmt.order_by(*price_asc)
        elif order == "default":
            stmt = stmt.order_by(*price_asc, _AVG_RATING.desc())
        stmt = stmt.order_by(Shop.id.asc())

        return [
            (shop, float(avg_rating), int(review_count))
            for shop, avg_rating, review_count in self.session.execute(stmt).all()
        ]

    def fetch_rating_summary(self, shop_id: int) -> tuple[float, int]:
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(Review.shop_id == shop_id)
        avg_rating, review_count = self.session.execute(stmt).one()
        return float(avg_rating or 0), int(review_count or 0)

    def get(self, shop_id: int) -> Shop | None:
        return self.session.get(Shop, shop_id)

    def fetch_shop_by_slug(self, slug: str) -> Shop | None:
        return self.session.scalars(select(Shop).where(Shop.slug == slug)).first()

    def slug_exists(self, slug: str) -> bool:
        return self.session.scalar(select(func.count(Shop.id)).where(Shop.slug == slug)) > 0

    def fetch_opening_hours(self, shop_id: int) -> list[OpeningHours]:
        stmt = (
            select(OpeningHours)
            .where(OpeningHours.shop_id == shop_id)
            .order_by(OpeningHours.weekday.asc())
        )
        return list(self.session.scalars(stmt))

    def fetch_photos(self, shop_id: int) -> list[Photo]:
        stmt = (
            select(Photo)
            .where(Photo.shop_id == shop_id)
            .order_by(Photo.sort_order.asc(), Photo.id.asc())
        )
        return list(self.session.scalars(stmt))

    def fetch_recent_reviews(self, shop_id: int, limit: int) -> list[Review]:
        return self.fetch_reviews_page(shop_id, 0, limit)

    def fetch_all_reviews(self, shop_id: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.shop_id == shop_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return list(self.session.scalars(stmt))

    def fetch_reviews_page(self, shop_id: int, offset: int, limit: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.shop_id == shop_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def add(self, shop: Shop) -> Shop:
        self.session.add(shop)
        self.session.flush()
        return shop

    def replace_opening_hours(self, shop_id: int, rows: list[OpeningHours]) -> list[OpeningHours]:
        self.session.execute(delete(OpeningHours).where(OpeningHours.shop_id == shop_id))
        self.session.add_all(rows)
        self.session.flush()
        return rows

    def delete(self, shop: Shop) -> None:
        self.session.delete(shop)
        self.session.flush()


class CityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_cities(self) -> list[City]:
        return list(self.session.scalars(select(City).order_by(City.name.asc())))

    def get_by_slug(self, slug: str) -> City | None:
        return self.session.scalars(select(City).where(City.slug == slug)).first()


class ReviewRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_for_user_and_shop(self, user_id: int, shop_id: int) -> Review | None:
        stmt = select(Review).where(Review.user_id == user_id, Review.shop_id == shop_id)
        return self.session.scalars(stmt).first()

    def insert(self, review: Review) -> Review:
        """Flush a new review; the unique index may raise ``IntegrityError``."""
        self.session.add(review)
        self.session.flush()
        return review

    def update_owned(self, review_id: int, user_id: int, values: dict[str, Any]) -> Review | None:
        """Single conditional UPDATE on id and owner; ``None`` when nothing matched."""
        stmt = (
            update(Review)
            .where(Review.id == review_id, Review.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if self.session.execute(stmt).rowcount == 0:
            return None
        review = self.session.get(Review, review_id)
        self.session.refresh(review)
        return review

    def delete_owned(self, review_id: int, user_id: int) -> bool:
        stmt = (
            delete(Review)
            .where(Review.id == review_id, Review.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return self.session.execute(stmt).rowcount > 0

    def list_for_user(self, user_id: int, offset: int, limit: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.user_id == user_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def count_for_user(self, user_id: int) -> int:
        return self.session.scalar(select(func.count(Review.id)).where(Review.user_id == user_id))


class FavoriteRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find(self, user_id: int, shop_id: int) -> UserFavorite | None:
        stmt = select(UserFavorite).where(UserFavorite.user_id == user_id, UserFavorite.shop_id == shop_id)
        return self.session.scalars(stmt).first()

    def insert(self, favorite: UserFavorite) -> UserFavorite:
        self.session.add(favorite)
        self.session.flush()
        return favorite

    def delete(self, user_id: int, shop_id: int) -> bool:
        stmt = delete(UserFavorite).where(UserFavorite.user_id == user_id, UserFavorite.shop_id == shop_id)
        return self.session.execute(stmt).rowcount > 0

    def list_for_user(self, user_id: int, offset: int, limit: int) -> list[tuple[UserFavorite, Shop]]:
        stmt = (
            select(UserFavorite, Shop)
            .join(Shop, UserFavorite.shop_id == Shop.id)
            .where(UserFavorite.user_id == user_id)
            .order_by(UserFavorite.created_at.desc(), UserFavorite.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [(favorite, shop) for favorite, shop in self.session.execute(stmt).all()]

    def shop_ids_for_user(self, user_id: int) -> list[int]:
        stmt = select(UserFavorite.shop_id).where(UserFavorite.user_id == user_id)
        return list(self.session.scalars(stmt))

    def count_for_user(self, user_id: int) -> int:
        return self.session.scalar(select(func.count(UserFavorite.id)).where(UserFavorite.user_id == user_id))


class UserRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self.session.scalars(select(User).where(User.email == email)).first()

    def insert(self, user: User) -> User:
        self.session.add(user)
        self.session.flush()
        return user
