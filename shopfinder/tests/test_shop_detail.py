from __future__ import annotations

from datetime import datetime

from shopfinder.shops.query import get_shop_by_slug, list_cities
from shopfinder.storage.tables import City, Photo

WEDNESDAY_EVENING = datetime(2024, 6, 12, 23, 0)


def test_unknown_slug_returns_none(db_session):
    assert get_shop_by_slug(db_session, "gibt-es-nicht") is None


def test_detail_includes_full_review_history(db_session, make_shop, add_review):
    shop = make_shop("Döner Palace", slug="doener-palace")
    for rating in (5, 4, 4, 3, 5, 2, 1):
        add_review(shop, rating)

    detail = get_shop_by_slug(db_session, "doener-palace", now=WEDNESDAY_EVENING)
    assert len(detail.reviews) == 7
    assert detail.review_count == 7
    assert detail.avg_rating == 24 / 7
    assert [r.id for r in detail.reviews] == sorted((r.id for r in detail.reviews), reverse=True)


def test_detail_without_reviews_has_zero_rating(db_session, make_shop):
    make_shop("Leer", slug="leer")
    detail = get_shop_by_slug(db_session, "leer", now=WEDNESDAY_EVENING)
    assert detail.avg_rating == 0.0
    assert detail.review_count == 0
    assert detail.status_text == "Öffnungszeiten unbekannt"


def test_detail_hours_are_ordered_and_evaluated(db_session, make_shop):
    make_shop(
        "Spätkauf",
        slug="spaetkauf",
        hours=[(4, "11:00", "22:00"), (3, "11:00", "22:00"), (0, None, None)],
    )
    detail = get_shop_by_slug(db_session, "spaetkauf", now=WEDNESDAY_EVENING)
    assert [h.weekday for h in detail.opening_hours] == [0, 3, 4]
    assert not detail.is_open
    assert detail.status_text == "Öffnet morgen um 11:00"


def test_detail_lists_photos_in_sort_order(db_session, make_shop):
    shop = make_shop("Fotogen", slug="fotogen")
    db_session.add_all([
        Photo(shop_id=shop.id, url="/b.jpg", sort_order=2),
        Photo(shop_id=shop.id, url="/a.jpg", sort_order=1, is_primary=True),
    ])
    db_session.commit()

    detail = get_shop_by_slug(db_session, "fotogen")
    assert [p.url for p in detail.photos] == ["/a.jpg", "/b.jpg"]


def test_offers_are_split_into_lines(db_session, make_shop):
    make_shop("Angebot", slug="angebot", has_offers=True, offers="Döner + Getränk 7€\n\nMittagsmenü")
    detail = get_shop_by_slug(db_session, "angebot")
    assert detail.offers == ["Döner + Getränk 7€", "Mittagsmenü"]


def test_list_cities_sorted_by_name(db_session):
    db_session.add_all([
        City(name="Freiberg", slug="freiberg", lat=50.9167, lng=13.3417),
        City(name="Chemnitz", slug="chemnitz", lat=50.8278, lng=12.9214),
    ])
    db_session.commit()

    cities = list_cities(db_session)
    assert [c.slug for c in cities] == ["chemnitz", "freiberg"]
    assert isinstance(cities[0].lat, float)
