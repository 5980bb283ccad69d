from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import DuplicateUser, NotFound
from ..storage.repositories import FavoriteRepository, ReviewRepository, UserRepository
from ..storage.tables import User
from .models import UserProfile

logger = logging.getLogger(__name__)


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def session_user(user: User) -> dict[str, Any]:
    """The JSON-safe dict kept in the session cookie."""
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


def register_user(session: Session, email: str, password: str, name: str, role: str = "user") -> User:
    email = email.strip().lower()
    repo = UserRepository(session)
    if repo.get_by_email(email) is not None:
        raise DuplicateUser(email)

    try:
        user = repo.insert(User(email=email, password_hash=_hash_password(password), name=name, role=role))
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateUser(email)

    session.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(session: Session, email: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns the session user dict or ``None``."""
    user = UserRepository(session).get_by_email(email.strip().lower())
    if user is None or not _verify_password(password, user.password_hash):
        return None

    user.last_login_at = datetime.now(timezone.utc)
    session.commit()
    return session_user(user)


def get_user_profile(session: Session, user_id: int) -> UserProfile:
    user = UserRepository(session).get(user_id)
    if user is None:
        raise NotFound("User", user_id)
    return UserProfile(
        **UserProfile.model_validate(user).model_dump(exclude={"favorite_count", "review_count"}),
        favorite_count=FavoriteRepository(session).count_for_user(user_id),
        review_count=ReviewRepository(session).count_for_user(user_id),
    )
