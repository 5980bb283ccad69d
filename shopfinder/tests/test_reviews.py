from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from shopfinder.errors import DuplicateReview, NotFound, NotFoundOrUnauthorized
from shopfinder.reviews.models import (
    ANONYMOUS_AUTHOR_NAME,
    AnonymousIdentity,
    AuthenticatedIdentity,
    ReviewUpdate,
)
from shopfinder.reviews.service import (
    create_review,
    delete_review,
    fingerprint_hash,
    get_user_review_for_shop,
    list_reviews_for_shop,
    list_reviews_for_user,
    update_review,
)
from shopfinder.storage.repositories import ReviewRepository
from shopfinder.storage.tables import Review


def test_fingerprint_hash_is_stable_and_distinct():
    a = fingerprint_hash("10.0.0.1", "Firefox")
    assert a == fingerprint_hash("10.0.0.1", "Firefox")
    assert a != fingerprint_hash("10.0.0.2", "Firefox")
    assert len(a) == 64
    assert fingerprint_hash(None, None) == fingerprint_hash("unknown", "unknown")


def test_authenticated_review_is_attributed(db_session, make_shop, make_user):
    shop = make_shop()
    user = make_user(name="Ayşe")

    review = create_review(db_session, shop.id, 5, "Bester Döner", AuthenticatedIdentity(user.id, user.name))
    assert review.user_id == user.id
    assert review.user_hash is None
    assert review.author_name == "Ayşe"
    assert not review.is_anonymous
    assert get_user_review_for_shop(db_session, user.id, shop.id).id == review.id


def test_second_review_by_same_user_is_rejected(db_session, make_shop, make_user):
    shop = make_shop()
    user = make_user()
    identity = AuthenticatedIdentity(user.id)
    create_review(db_session, shop.id, 4, "Gut", identity)

    with pytest.raises(DuplicateReview):
        create_review(db_session, shop.id, 1, "Doch nicht", identity)
    assert db_session.query(Review).count() == 1


def test_storage_rejects_duplicate_that_slipped_past_the_check(db_session, make_shop, make_user):
    shop = make_shop()
    user = make_user()
    identity = AuthenticatedIdentity(user.id)
    create_review(db_session, shop.id, 4, "Gut", identity)

    # Simulate a concurrent request that ran its existence check first
    real_find = ReviewRepository.find_for_user_and_shop
    calls = {"n": 0}

    def stale_then_real(self, user_id, shop_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_find(self, user_id, shop_id)

    with patch.object(ReviewRepository, "find_for_user_and_shop", stale_then_real):
        with pytest.raises(DuplicateReview):
            create_review(db_session, shop.id, 2, "Nochmal", identity)

    assert calls["n"] == 2
    assert db_session.query(Review).filter_by(shop_id=shop.id).count() == 1


def test_other_constraint_failures_are_not_duplicates(db_session, make_shop):
    shop = make_shop()

    # No such user: the foreign key fails and no review exists afterwards
    with pytest.raises(IntegrityError):
        create_review(db_session, shop.id, 3, "Geist", AuthenticatedIdentity(999))

    assert db_session.query(Review).count() == 0


def test_same_user_may_review_different_shops(db_session, make_shop, make_user):
    user = make_user()
    for shop in (make_shop(), make_shop()):
        create_review(db_session, shop.id, 3, "Okay", AuthenticatedIdentity(user.id))
    assert len(list_reviews_for_user(db_session, user.id)) == 2


def test_anonymous_reviews_are_never_deduplicated(db_session, make_shop):
    shop = make_shop()
    first = AnonymousIdentity(fingerprint_hash("10.0.0.1", "Firefox"))
    second = AnonymousIdentity(fingerprint_hash("10.0.0.2", "Chrome"))

    create_review(db_session, shop.id, 5, "Super", first)
    create_review(db_session, shop.id, 4, "Gut", second)
    create_review(db_session, shop.id, 3, "Nochmal ich", first)

    reviews = list_reviews_for_shop(db_session, shop.id)
    assert len(reviews) == 3
    assert all(r.is_anonymous and r.user_id is None for r in reviews)
    assert {r.author_name for r in reviews} == {ANONYMOUS_AUTHOR_NAME}


def test_review_for_unknown_shop(db_session):
    with pytest.raises(NotFound):
        create_review(db_session, 999, 5, "Wo?", AnonymousIdentity("h"))


def test_owner_can_edit_review(db_session, make_shop, make_user):
    shop = make_shop()
    user = make_user()
    review = create_review(db_session, shop.id, 2, "Naja", AuthenticatedIdentity(user.id))

    updated = update_review(db_session, review.id, user.id, ReviewUpdate(rating=4))
    assert updated.rating == 4
    assert updated.text == "Naja"
    assert updated.is_edited
    assert updated.edited_at is not None


def test_other_user_cannot_edit_or_delete(db_session, make_shop, make_user):
    shop = make_shop()
    owner = make_user("owner@example.com")
    other = make_user("other@example.com")
    review = create_review(db_session, shop.id, 5, "Meins", AuthenticatedIdentity(owner.id))

    with pytest.raises(NotFoundOrUnauthorized) as foreign:
        update_review(db_session, review.id, other.id, ReviewUpdate(rating=1))
    with pytest.raises(NotFoundOrUnauthorized) as missing:
        update_review(db_session, 12345, other.id, ReviewUpdate(rating=1))
    assert str(foreign.value) == str(missing.value)

    with pytest.raises(NotFoundOrUnauthorized):
        delete_review(db_session, review.id, other.id)

    db_session.expire_all()
    assert db_session.get(Review, review.id).rating == 5


def test_anonymous_reviews_cannot_be_claimed(db_session, make_shop, make_user, add_review):
    review = add_review(make_shop(), 3)
    user = make_user()
    with pytest.raises(NotFoundOrUnauthorized):
        delete_review(db_session, review.id, user.id)


def test_owner_can_delete_review(db_session, make_shop, make_user):
    shop = make_shop()
    user = make_user()
    review = create_review(db_session, shop.id, 5, "Weg damit", AuthenticatedIdentity(user.id))

    review_id = review.id
    delete_review(db_session, review_id, user.id)
    assert db_session.get(Review, review_id) is None
    # And the user may review the shop again
    create_review(db_session, shop.id, 4, "Zweiter Versuch", AuthenticatedIdentity(user.id))


def test_shop_reviews_are_paged_newest_first(db_session, make_shop, add_review):
    shop = make_shop()
    reviews = [add_review(shop, 3) for _ in range(5)]
    page = list_reviews_for_shop(db_session, shop.id, offset=1, limit=2)
    assert [r.id for r in page] == [reviews[3].id, reviews[2].id]
