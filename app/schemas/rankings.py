"""
Schemas for ranking endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RankingInteractionRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    restaurant_id: str = Field(min_length=1, max_length=64)
    restaurant_name: str = Field(min_length=1, max_length=255)
    menu_item: str = Field(min_length=1, max_length=255)
    category: str
    rank_position: int | None = Field(default=None, ge=1)


class RankedItemResponse(BaseModel):
    id: str
    name: str
    category: str
    menu_item: str
    rank_position: int | None = None
    owner_id: str | None = None
    ranking_points: float
    normalized_points: float
    interaction_points: float
    total_score: float


class RankedItemListResponse(BaseModel):
    menu_item: str
    category: str
    items: list[RankedItemResponse] = Field(default_factory=list)
