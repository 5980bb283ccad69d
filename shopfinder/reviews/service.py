from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import DuplicateReview, NotFound, NotFoundOrUnauthorized
from ..storage.repositories import ReviewRepository, ShopRepository
from ..storage.tables import Review
from .models import (
    ANONYMOUS_AUTHOR_NAME,
    AnonymousIdentity,
    AuthenticatedIdentity,
    ReviewIdentity,
    ReviewUpdate,
)

logger = logging.getLogger(__name__)


def fingerprint_hash(ip: str | None, user_agent: str | None) -> str:
    """Stable SHA-256 of client IP and user agent for anonymous reviewers."""
    raw = (ip or "unknown") + (user_agent or "unknown")
    return hashlib.sha256(raw.encode()).hexdigest()


def get_user_review_for_shop(session: Session, user_id: int, shop_id: int) -> Review | None:
    return ReviewRepository(session).find_for_user_and_shop(user_id, shop_id)


def create_review(
    session: Session,
    shop_id: int,
    rating: int,
    text: str,
    identity: ReviewIdentity,
) -> Review:
    """Create a review.

    Authenticated users get at most one review per shop: the pre-check
    reports the common case, and the partial unique index on
    ``(user_id, shop_id)`` catches two requests racing past it. Anonymous
    reviews are never deduplicated; their hash is informational only.
    """
    if ShopRepository(session).get(shop_id) is None:
        raise NotFound("Shop", shop_id)

    repo = ReviewRepository(session)
    if isinstance(identity, AuthenticatedIdentity):
        if repo.find_for_user_and_shop(identity.user_id, shop_id) is not None:
            raise DuplicateReview(identity.user_id, shop_id)
        review = Review(
            shop_id=shop_id,
            user_id=identity.user_id,
            user_hash=None,
            rating=rating,
            text=text,
            author_name=identity.display_name,
            is_anonymous=False,
        )
    elif isinstance(identity, AnonymousIdentity):
        review = Review(
            shop_id=shop_id,
            user_id=None,
            user_hash=identity.user_hash,
            rating=rating,
            text=text,
            author_name=ANONYMOUS_AUTHOR_NAME,
            is_anonymous=True,
        )
    else:
        raise TypeError(f"Unsupported review identity: {identity!r}")

    try:
        repo.insert(review)
        session.commit()
    except IntegrityError:
        session.rollback()
        # Only a review that now exists makes this a duplicate; anything else
        # (a user deleted mid-request, say) is a different constraint failure.
        if (
            isinstance(identity, AuthenticatedIdentity)
            and repo.find_for_user_and_shop(identity.user_id, shop_id) is not None
        ):
            logger.warning(
                "Concurrent duplicate review by user %s for shop %s rejected by storage",
                identity.user_id,
                shop_id,
            )
            raise DuplicateReview(identity.user_id, shop_id)
        raise

    session.refresh(review)
    logger.info("Created %s review %s for shop %s",
                "anonymous" if review.is_anonymous else "user", review.id, shop_id)
    return review


def update_review(session: Session, review_id: int, owner_id: int, patch: ReviewUpdate) -> Review:
    """Apply ``patch`` to a review owned by ``owner_id`` and mark it edited."""
    now = datetime.now(timezone.utc)
    values = patch.model_dump(exclude_none=True)
    values.update(is_edited=True, edited_at=now, updated_at=now)

    review = ReviewRepository(session).update_owned(review_id, owner_id, values)
    if review is None:
        session.rollback()
        raise NotFoundOrUnauthorized()

    session.commit()
    session.refresh(review)
    logger.info("Updated review %s", review_id)
    return review


def delete_review(session: Session, review_id: int, owner_id: int) -> None:
    if not ReviewRepository(session).delete_owned(review_id, owner_id):
        session.rollback()
        raise NotFoundOrUnauthorized()
    session.commit()
    logger.info("Deleted review %s", review_id)


def list_reviews_for_shop(session: Session, shop_id: int, offset: int = 0, limit: int = 10) -> list[Review]:
    return ShopRepository(session).fetch_reviews_page(shop_id, offset, limit)


def list_reviews_for_user(session: Session, user_id: int, offset: int = 0, limit: int = 10) -> list[Review]:
    return ReviewRepository(session).list_for_user(user_id, offset, limit)
