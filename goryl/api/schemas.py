"""Pydantic request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from goryl.domain.entities import InteractionType, ScoredItem


class InteractionCreateRequest(BaseModel):
    user_id: str | None = None
    item_id: str = Field(min_length=1)
    type: InteractionType
    category: str | None = None


class InteractionResponse(BaseModel):
    recorded: bool
    user_id: str | None = None
    item_id: str
    type: InteractionType
    weight: float | None = None
    timestamp: datetime | None = None


class ItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: str
    created_at: datetime
    popularity: float
    title: str | None = None
    price: float | None = None
    seller_id: str | None = None
    image_url: str | None = None


class RecommendationItem(BaseModel):
    item: ItemResponse
    score: float
    reason: str

    @classmethod
    def from_scored(cls, scored: ScoredItem) -> "RecommendationItem":
        return cls(
            item=ItemResponse.model_validate(scored.item),
            score=scored.score,
            reason=scored.reason,
        )


class RecommendationsResponse(BaseModel):
    mode: str
    recommendations: list[RecommendationItem]


class CacheStatsResponse(BaseModel):
    entries: int
    hits: int
    misses: int
    coalesced: int
    stale: int
    errors: int
    fetches: int
