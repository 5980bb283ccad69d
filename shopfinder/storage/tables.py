"""
SQLAlchemy tables for shops, their opening hours, reviews, photos, and the
users who review and favorite them.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from shopfinder.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Registered account; anonymous reviewers have no row here."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")  # user, admin
    avatar_url = Column(String, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    reviews = relationship("Review", back_populates="user")
    favorites = relationship("UserFavorite", back_populates="user", cascade="all, delete-orphan")


class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    lat = Column(Numeric(10, 7), nullable=False)
    lng = Column(Numeric(10, 7), nullable=False)


class Shop(Base):
    """A published (or draft) döner shop listing."""

    __tablename__ = "shops"
    __table_args__ = (
        Index("idx_shop_city_published", "city", "is_published"),
        CheckConstraint("price_level IS NULL OR price_level BETWEEN 1 AND 4", name="ck_shop_price_level"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    lat = Column(Numeric(10, 7), nullable=False)
    lng = Column(Numeric(10, 7), nullable=False)
    street = Column(String, nullable=False)
    city = Column(String, nullable=False)
    zip = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    website = Column(String, nullable=True)
    price_level = Column(Integer, nullable=True)  # 1-4
    halal = Column(Boolean, nullable=False, default=False)
    veg = Column(Boolean, nullable=False, default=False)
    meat_type = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=True)

    has_offers = Column(Boolean, nullable=False, default=False)
    offers = Column(Text, nullable=True)  # newline separated
    has_delivery = Column(Boolean, nullable=False, default=False)
    delivery_fee = Column(Numeric(5, 2), nullable=True)
    min_delivery_order = Column(Numeric(5, 2), nullable=True)
    delivery_radius = Column(Integer, nullable=True)  # kilometers

    # Only written by the places import
    google_place_id = Column(String, nullable=True, unique=True)
    data_source = Column(String, nullable=False, default="manual")  # manual, google, hybrid
    google_rating = Column(Numeric(3, 2), nullable=True)
    google_review_count = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    opening_hours = relationship("OpeningHours", back_populates="shop", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="shop", cascade="all, delete-orphan")
    photos = relationship("Photo", back_populates="shop", cascade="all, delete-orphan")
    favorites = relationship(
        "UserFavorite", back_populates="shop", cascade="all, delete-orphan"
    )


class OpeningHours(Base):
    """One row per (shop, weekday); weekday 0=Sunday..6=Saturday."""

    __tablename__ = "opening_hours"
    __table_args__ = (
        UniqueConstraint("shop_id", "weekday", name="uq_opening_hours_shop_weekday"),
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_opening_hours_weekday"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)
    open_time = Column(String, nullable=True)  # HH:MM
    close_time = Column(String, nullable=True)  # HH:MM
    note = Column(String, nullable=True)

    shop = relationship("Shop", back_populates="opening_hours")


class Review(Base):
    """Either user_id (authenticated) or user_hash (anonymous) is set, never both."""

    __tablename__ = "reviews"
    __table_args__ = (
        Index("idx_review_shop_created", "shop_id", "created_at"),
        Index(
            "uq_review_user_shop",
            "user_id",
            "shop_id",
            unique=True,
            sqlite_where=text("user_id IS NOT NULL"),
            postgresql_where=text("user_id IS NOT NULL"),
        ),
        CheckConstraint(
            "(user_id IS NULL) <> (user_hash IS NULL)",
            name="ck_review_single_identity",
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    user_hash = Column(String, nullable=True)  # SHA-256 of IP + user agent
    rating = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    author_name = Column(String, nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=True)
    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    shop = relationship("Shop", back_populates="reviews")
    user = relationship("User", back_populates="reviews")


class Photo(Base):
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=True)
    source = Column(String, nullable=False, default="manual")  # manual, google, imported
    category = Column(String, nullable=False, default="other")
    is_primary = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    alt_text = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    shop = relationship("Shop", back_populates="photos")


class UserFavorite(Base):
    __tablename__ = "user_favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "shop_id", name="uq_user_favorite"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="favorites")
    shop = relationship("Shop", back_populates="favorites")
