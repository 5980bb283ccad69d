"""
Shared pytest fixtures: an in-memory database, a TestClient wired to it,
and small factories for seeding shops, users and reviews.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shopfinder.app import app
from shopfinder.auth.users import _hash_password
from shopfinder.database import Base, get_db, make_engine
from shopfinder.storage import tables  # noqa: F401
from shopfinder.storage.tables import OpeningHours, Review, Shop, User

FREIBERG = (50.9167, 13.3417)


@pytest.fixture
def test_engine():
    """One shared connection so every session sees the same in-memory database."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=test_engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_engine) -> Generator[TestClient, None, None]:
    TestingSession = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_shop(db_session):
    counter = {"n": 0}

    def _make(name: str | None = None, hours: list[tuple[int, str | None, str | None]] | None = None, **fields) -> Shop:
        counter["n"] += 1
        name = name or f"Shop {counter['n']}"
        lat, lng = fields.pop("coords", FREIBERG)
        shop = Shop(
            name=name,
            slug=fields.pop("slug", f"shop-{counter['n']}"),
            lat=lat,
            lng=lng,
            street=fields.pop("street", "Hauptstraße 1"),
            city=fields.pop("city", "Freiberg"),
            **fields,
        )
        db_session.add(shop)
        db_session.flush()
        for weekday, open_time, close_time in hours or []:
            db_session.add(OpeningHours(shop_id=shop.id, weekday=weekday, open_time=open_time, close_time=close_time))
        db_session.commit()
        return shop

    return _make


@pytest.fixture
def make_user(db_session):
    def _make(email: str = "kunde@example.com", name: str = "Kunde", role: str = "user",
              password: str | None = None) -> User:
        # bcrypt is slow; only hash when the test actually logs in
        user = User(
            email=email,
            name=name,
            role=role,
            password_hash=_hash_password(password) if password else "!",
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def add_review(db_session):
    counter = {"n": 0}

    def _add(shop: Shop, rating: int, user: User | None = None, text: str = "Lecker") -> Review:
        counter["n"] += 1
        review = Review(
            shop_id=shop.id,
            user_id=user.id if user else None,
            user_hash=None if user else f"hash-{counter['n']}",
            rating=rating,
            text=text,
            author_name=user.name if user else "Anonymer Nutzer",
            is_anonymous=user is None,
            # Strictly increasing so "newest first" is deterministic
            created_at=datetime(2024, 1, 1) + timedelta(minutes=counter["n"]),
        )
        db_session.add(review)
        db_session.commit()
        return review

    return _add
