from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ..shops.models import ShopDetail


class FavoriteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    shop_id: int
    created_at: datetime


class FavoriteWithShop(FavoriteOut):
    shop: ShopDetail
