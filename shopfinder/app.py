from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import get_current_user, require_admin, require_user, review_identity
from .auth.models import LoginRequest, RegisterRequest, UserProfile
from .auth.users import authenticate, get_user_profile, register_user, session_user
from .config import DEFAULT_APP_CONFIG
from .database import get_db, init_db
from .errors import DuplicateReview, DuplicateUser, InvalidFilter, NotFound, NotFoundOrUnauthorized
from .favorites.models import FavoriteOut, FavoriteWithShop
from .favorites.service import add_favorite, favorite_shop_ids, list_favorites, remove_favorite
from .reviews.models import ReviewCreate, ReviewIdentity, ReviewOut, ReviewUpdate
from .reviews.service import (
    create_review,
    delete_review,
    list_reviews_for_shop,
    list_reviews_for_user,
    update_review,
)
from .shops.admin import create_shop, delete_shop, replace_opening_hours, update_shop
from .shops.filters import parse_shop_filter
from .shops.models import (
    CityOut,
    OpeningHoursList,
    OpeningHoursOut,
    RankedShop,
    ShopCreate,
    ShopDetail,
    ShopOut,
    ShopUpdate,
)
from .shops.query import get_shop_by_slug, list_cities, query_shops, top_shops
from .storage.repositories import ShopRepository

config = DEFAULT_APP_CONFIG
logging.basicConfig(level=config.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    logger.info("Database ready at %s", config.database_url)
    yield


app = FastAPI(title="Döner Shop Finder API", version="1.0.0", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=config.session_secret)


# ── Error mapping ────────────────────────────────────────────────────────


@app.exception_handler(NotFound)
@app.exception_handler(NotFoundOrUnauthorized)
async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DuplicateReview)
async def duplicate_review_handler(request: Request, exc: DuplicateReview) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "detail": "Du hast diesen Laden bereits bewertet. Du kannst deine Bewertung bearbeiten.",
        },
    )


@app.exception_handler(DuplicateUser)
async def duplicate_user_handler(request: Request, exc: DuplicateUser) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvalidFilter)
async def invalid_filter_handler(request: Request, exc: InvalidFilter) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/cities", response_model=list[CityOut])
def cities(db: Session = Depends(get_db)) -> list[CityOut]:
    return list_cities(db)


@app.get("/api/top", response_model=list[RankedShop])
def top(
    city: str | None = None,
    limit: int = Query(config.top_shops_limit, ge=1, le=50),
    db: Session = Depends(get_db),
) -> list[RankedShop]:
    return top_shops(db, city, limit)


@app.get("/api/shops", response_model=list[RankedShop])
def shops(
    request: Request,
    db: Session = Depends(get_db),
    user: dict | None = Depends(get_current_user),
) -> list[RankedShop]:
    shop_filter = parse_shop_filter(request.query_params, config)
    results = query_shops(db, shop_filter, config=config)

    # Opening state is derived from the page's hours, not filtered in storage
    if shop_filter.open_now:
        results = [shop for shop in results if shop.is_open]

    if user:
        favorites = favorite_shop_ids(db, user["id"])
        for shop in results:
            shop.is_favorited = shop.id in favorites
    return results


@app.get("/api/shops/{slug}", response_model=ShopDetail)
def shop_detail(
    slug: str,
    db: Session = Depends(get_db),
    user: dict | None = Depends(get_current_user),
) -> ShopDetail:
    shop = get_shop_by_slug(db, slug)
    if shop is None:
        raise HTTPException(status_code=404, detail="Shop not found")
    if user:
        shop.is_favorited = shop.id in favorite_shop_ids(db, user["id"])
    return shop


@app.get("/api/shops/{slug}/reviews", response_model=list[ReviewOut])
def shop_reviews(
    slug: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[ReviewOut]:
    shop = ShopRepository(db).fetch_shop_by_slug(slug)
    if shop is None:
        raise HTTPException(status_code=404, detail="Shop not found")
    return [ReviewOut.model_validate(r) for r in list_reviews_for_shop(db, shop.id, offset, limit)]


# ── Reviews ──────────────────────────────────────────────────────────────


@app.post("/api/reviews", response_model=ReviewOut, status_code=201)
def post_review(
    body: ReviewCreate,
    identity: ReviewIdentity = Depends(review_identity),
    db: Session = Depends(get_db),
) -> ReviewOut:
    review = create_review(db, body.shop_id, body.rating, body.text, identity)
    return ReviewOut.model_validate(review)


@app.put("/api/reviews/{review_id}", response_model=ReviewOut)
def put_review(
    review_id: int,
    body: ReviewUpdate,
    user: dict = Depends(require_user),
    db: Session = Depends(get_db),
) -> ReviewOut:
    return ReviewOut.model_validate(update_review(db, review_id, user["id"], body))


@app.delete("/api/reviews/{review_id}")
def remove_review(
    review_id: int,
    user: dict = Depends(require_user),
    db: Session = Depends(get_db),
) -> dict:
    delete_review(db, review_id, user["id"])
    return {"status": "deleted"}


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/api/auth/register", status_code=201)
def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)) -> dict:
    user = register_user(db, body.email, body.password, body.name)
    request.session["user"] = session_user(user)
    return {"status": "ok", "user": request.session["user"]}


@app.post("/api/auth/login")
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)) -> dict:
    user = authenticate(db, body.email, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="E-Mail oder Passwort ist falsch")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/api/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/api/auth/me", response_model=UserProfile)
def auth_me(user: dict = Depends(require_user), db: Session = Depends(get_db)) -> UserProfile:
    return get_user_profile(db, user["id"])


@app.get("/api/auth/favorites", response_model=list[FavoriteWithShop])
def favorites(
    offset: int = Query(0, ge=0),
    limit: int = Query(config.favorites_page_size, ge=1, le=100),
    user: dict = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[FavoriteWithShop]:
    return list_favorites(db, user["id"], offset, limit, config=config)


@app.post("/api/auth/favorites/{shop_id}", response_model=FavoriteOut, status_code=201)
def favorite_add(shop_id: int, user: dict = Depends(require_user), db: Session = Depends(get_db)) -> FavoriteOut:
    return FavoriteOut.model_validate(add_favorite(db, user["id"], shop_id))


@app.delete("/api/auth/favorites/{shop_id}")
def favorite_remove(shop_id: int, user: dict = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    remove_favorite(db, user["id"], shop_id)
    return {"status": "removed"}


@app.get("/api/auth/reviews", response_model=list[ReviewOut])
def my_reviews(
    offset: int = Query(0, ge=0),
    limit: int = Query(config.user_reviews_page_size, ge=1, le=100),
    user: dict = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[ReviewOut]:
    return [ReviewOut.model_validate(r) for r in list_reviews_for_user(db, user["id"], offset, limit)]


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.post("/api/admin/shops", response_model=ShopOut, status_code=201)
def admin_create_shop(body: ShopCreate, user: dict = Depends(require_admin), db: Session = Depends(get_db)) -> ShopOut:
    return ShopOut.model_validate(create_shop(db, body))


@app.put("/api/admin/shops/{shop_id}", response_model=ShopOut)
def admin_update_shop(
    shop_id: int,
    body: ShopUpdate,
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ShopOut:
    return ShopOut.model_validate(update_shop(db, shop_id, body))


@app.put("/api/admin/shops/{shop_id}/hours", response_model=list[OpeningHoursOut])
def admin_replace_hours(
    shop_id: int,
    body: OpeningHoursList,
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[OpeningHoursOut]:
    return [OpeningHoursOut.model_validate(h) for h in replace_opening_hours(db, shop_id, body.root)]


@app.delete("/api/admin/shops/{shop_id}")
def admin_delete_shop(shop_id: int, user: dict = Depends(require_admin), db: Session = Depends(get_db)) -> dict:
    delete_shop(db, shop_id)
    return {"status": "deleted"}
