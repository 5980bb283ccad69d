from __future__ import annotations

from fastapi.testclient import TestClient

from shopfinder.app import app
from shopfinder.storage.tables import Review


def _login(c, email, password="geheim123"):
    c.post("/api/auth/login", json={"email": email, "password": password})


# ── Public endpoints ─────────────────────────────────────────────────────


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_list_shops_with_raw_query_params(client, make_shop, add_review):
    cheap = make_shop("Billig", price_level=1, halal=True)
    make_shop("Teuer", price_level=4)
    add_review(cheap, 5)

    resp = client.get("/api/shops", params={"city": "Freiberg", "sort_by": "price", "halal": "true"})
    assert resp.status_code == 200
    body = resp.json()
    assert [s["name"] for s in body] == ["Billig"]
    assert body[0]["avg_rating"] == 5.0
    assert body[0]["distance"] is None
    assert body[0]["is_favorited"] is None


def test_list_shops_with_reference_point(client, make_shop):
    make_shop("Hier")
    resp = client.get("/api/shops", params={"lat": "50.9167", "lng": "13.3417", "sort_by": "distance"})
    assert resp.json()[0]["distance"] == 0


def test_half_reference_point_is_a_bad_request(client):
    resp = client.get("/api/shops", params={"lat": "50.9"})
    assert resp.status_code == 400


def test_garbage_numbers_are_ignored(client, make_shop):
    make_shop()
    resp = client.get("/api/shops", params={"limit": "viele", "radius": "weit"})
    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_garbled_reference_point_is_ignored(client, make_shop):
    make_shop()
    resp = client.get("/api/shops", params={"lat": "abc", "lng": "13.3"})
    assert resp.status_code == 200
    assert resp.json()[0]["distance"] is None


def test_radius_alone_does_not_filter(client, make_shop):
    make_shop("Nah")
    make_shop("Fern", coords=(50.8278, 12.9214))
    resp = client.get("/api/shops", params={"radius": "1"})
    assert resp.status_code == 200
    assert sorted(s["name"] for s in resp.json()) == ["Fern", "Nah"]


def test_open_now_drops_closed_shops(client, make_shop):
    make_shop("Immer offen", hours=[(d, "00:00", "24:00") for d in range(7)])
    make_shop("Nie offen", hours=[(d, None, None) for d in range(7)])

    resp = client.get("/api/shops", params={"open_now": "true"})
    assert [s["name"] for s in resp.json()] == ["Immer offen"]


def test_shop_detail_and_reviews(client, make_shop, add_review):
    shop = make_shop("Döner Palace", slug="doener-palace")
    for rating in (5, 4, 3):
        add_review(shop, rating)

    resp = client.get("/api/shops/doener-palace")
    assert resp.status_code == 200
    assert resp.json()["review_count"] == 3
    assert "user_hash" not in resp.json()["reviews"][0]

    resp = client.get("/api/shops/doener-palace/reviews", params={"limit": 2})
    assert len(resp.json()) == 2

    assert client.get("/api/shops/unbekannt").status_code == 404
    assert client.get("/api/shops/unbekannt/reviews").status_code == 404


def test_top_and_cities(client, make_shop, add_review):
    for rating in (2, 5, 4, 3):
        add_review(make_shop(f"Laden {rating}"), rating)

    resp = client.get("/api/top", params={"city": "Freiberg"})
    assert [s["name"] for s in resp.json()] == ["Laden 5", "Laden 4", "Laden 3"]
    assert client.get("/api/cities").json() == []


# ── Reviews ──────────────────────────────────────────────────────────────


def test_anonymous_review(client, make_shop):
    shop = make_shop()
    resp = client.post("/api/reviews", json={"shop_id": shop.id, "rating": 4, "text": "Gut"})
    assert resp.status_code == 201
    assert resp.json()["is_anonymous"] is True
    assert resp.json()["author_name"] == "Anonymer Nutzer"

    # Anonymous visitors are not limited to one review
    resp = client.post("/api/reviews", json={"shop_id": shop.id, "rating": 5, "text": "Nochmal"})
    assert resp.status_code == 201


def test_review_validation(client, make_shop):
    shop = make_shop()
    assert client.post("/api/reviews", json={"shop_id": shop.id, "rating": 6, "text": "x"}).status_code == 422
    assert client.post("/api/reviews", json={"shop_id": 999, "rating": 3, "text": "x"}).status_code == 404


def test_user_review_lifecycle(client, make_shop, make_user, db_session):
    shop = make_shop()
    make_user("kunde@example.com", name="Kunde", password="geheim123")
    _login(client, "kunde@example.com")

    resp = client.post("/api/reviews", json={"shop_id": shop.id, "rating": 3, "text": "Okay"})
    assert resp.status_code == 201
    review_id = resp.json()["id"]
    assert resp.json()["author_name"] == "Kunde"

    resp = client.post("/api/reviews", json={"shop_id": shop.id, "rating": 5, "text": "Doppelt"})
    assert resp.status_code == 409

    resp = client.put(f"/api/reviews/{review_id}", json={"rating": 5})
    assert resp.status_code == 200
    assert resp.json()["is_edited"] is True

    mine = client.get("/api/auth/reviews").json()
    assert [r["id"] for r in mine] == [review_id]

    assert client.delete(f"/api/reviews/{review_id}").status_code == 200
    assert db_session.query(Review).count() == 0


def test_foreign_review_looks_missing(client, make_shop, make_user, add_review):
    owner = make_user("owner@example.com")
    review = add_review(make_shop(), 4, user=owner)
    make_user("other@example.com", password="geheim123")
    _login(client, "other@example.com")

    foreign = client.put(f"/api/reviews/{review.id}", json={"rating": 1})
    missing = client.put("/api/reviews/99999", json={"rating": 1})
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()


# ── Favorites ────────────────────────────────────────────────────────────


def test_favorites_flow(client, make_shop, make_user):
    shop = make_shop("Lieblingsladen", slug="liebling")
    make_user("kunde@example.com", password="geheim123")
    _login(client, "kunde@example.com")

    assert client.post(f"/api/auth/favorites/{shop.id}").status_code == 201
    assert client.post(f"/api/auth/favorites/{shop.id}").status_code == 201

    favorites = client.get("/api/auth/favorites").json()
    assert len(favorites) == 1
    assert favorites[0]["shop"]["is_favorited"] is True

    assert client.get("/api/shops").json()[0]["is_favorited"] is True
    assert client.get("/api/shops/liebling").json()["is_favorited"] is True
    assert client.get("/api/auth/me").json()["favorite_count"] == 1

    assert client.delete(f"/api/auth/favorites/{shop.id}").status_code == 200
    assert client.delete(f"/api/auth/favorites/{shop.id}").status_code == 200
    assert client.get("/api/shops").json()[0]["is_favorited"] is False
    assert client.post("/api/auth/favorites/999").status_code == 404


# ── Admin ────────────────────────────────────────────────────────────────


def test_admin_routes_require_admin_role(client, make_user):
    assert client.post("/api/admin/shops", json={}).status_code == 401

    make_user("kunde@example.com", password="geheim123")
    _login(client, "kunde@example.com")
    assert client.delete("/api/admin/shops/1").status_code == 403


def test_admin_shop_management(client, make_user):
    make_user("admin@example.com", role="admin", password="geheim123")
    _login(client, "admin@example.com")

    resp = client.post("/api/admin/shops", json={
        "name": "Neuer Grill",
        "lat": 50.92,
        "lng": 13.34,
        "street": "Weg 5",
        "city": "Freiberg",
        "opening_hours": [{"weekday": 1, "open_time": "11:00", "close_time": "22:00"}],
    })
    assert resp.status_code == 201
    shop = resp.json()
    assert shop["slug"] == "neuer-grill"

    resp = client.put(f"/api/admin/shops/{shop['id']}", json={"price_level": 2, "offers": ["Döner 5€"]})
    assert resp.json()["price_level"] == 2
    assert resp.json()["offers"] == ["Döner 5€"]

    resp = client.put(f"/api/admin/shops/{shop['id']}/hours", json=[
        {"weekday": 6, "open_time": "12:00", "close_time": "01:00"},
    ])
    assert [h["weekday"] for h in resp.json()] == [6]

    bad = client.put(f"/api/admin/shops/{shop['id']}/hours", json=[{"weekday": 7}])
    assert bad.status_code == 422

    assert client.delete(f"/api/admin/shops/{shop['id']}").status_code == 200
    assert client.get("/api/shops/neuer-grill").status_code == 404
    assert client.delete(f"/api/admin/shops/{shop['id']}").status_code == 404


def test_repeated_weekday_is_rejected(client, make_user, make_shop):
    shop = make_shop(hours=[(1, "11:00", "22:00")])
    make_user("admin@example.com", role="admin", password="geheim123")
    _login(client, "admin@example.com")

    resp = client.put(f"/api/admin/shops/{shop.id}/hours", json=[
        {"weekday": 1, "open_time": "11:00", "close_time": "22:00"},
        {"weekday": 1, "open_time": "12:00", "close_time": "23:00"},
    ])
    assert resp.status_code == 422

    resp = client.post("/api/admin/shops", json={
        "name": "Doppelt",
        "lat": 50.92,
        "lng": 13.34,
        "street": "Weg 6",
        "city": "Freiberg",
        "opening_hours": [{"weekday": 2}, {"weekday": 2}],
    })
    assert resp.status_code == 422

    # The existing week is untouched
    hours = client.get(f"/api/shops/{shop.slug}").json()["opening_hours"]
    assert [(h["weekday"], h["open_time"]) for h in hours] == [(1, "11:00")]


def test_fresh_client_has_no_session(client):
    fresh = TestClient(app)
    assert fresh.get("/api/auth/me").status_code == 401
