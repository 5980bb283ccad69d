from __future__ import annotations

from fastapi import HTTPException, Request

from ..reviews.models import AnonymousIdentity, AuthenticatedIdentity, ReviewIdentity
from ..reviews.service import fingerprint_hash


def get_current_user(request: Request) -> dict | None:
    """Session user for routes that work with or without login."""
    return request.session.get("user")


def require_user(request: Request) -> dict:
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Authentifizierung erforderlich")
    return user


def require_admin(request: Request) -> dict:
    """401 without login, 403 for non-admin accounts."""
    user = require_user(request)
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def review_identity(request: Request) -> ReviewIdentity:
    """Logged-in users review under their id; everyone else under a fingerprint.

    The fingerprint combines client IP and user agent so the same browser
    maps to the same hash across requests.
    """
    user = get_current_user(request)
    if user:
        return AuthenticatedIdentity(user_id=user["id"], display_name=user.get("name"))
    ip = request.client.host if request.client else None
    return AnonymousIdentity(user_hash=fingerprint_hash(ip, request.headers.get("user-agent")))
