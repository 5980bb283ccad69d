"""
Business-rule failures raised by the shop, review and favorite services.

The HTTP layer translates each of these into a status code; nothing here is
meant to surface as a generic server error.
"""
from __future__ import annotations


class ShopFinderError(Exception):
    """Base class for all domain errors."""


class NotFound(ShopFinderError):
    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class NotFoundOrUnauthorized(ShopFinderError):
    """Review missing or owned by someone else.

    Both cases share one message so callers cannot tell whether another user's
    review exists.
    """

    def __init__(self) -> None:
        super().__init__("Review not found or unauthorized")


class DuplicateReview(ShopFinderError):
    def __init__(self, user_id: int, shop_id: int) -> None:
        super().__init__(f"User {user_id} has already reviewed shop {shop_id}")
        self.user_id = user_id
        self.shop_id = shop_id


class DuplicateUser(ShopFinderError):
    def __init__(self, email: str) -> None:
        super().__init__(f"A user with e-mail {email!r} already exists")
        self.email = email


class InvalidFilter(ShopFinderError, ValueError):
    """A combined filter field cannot be honoured (e.g. lat without lng)."""
