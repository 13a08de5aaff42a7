"""Recommender port: abstract interface for the recommendation engine."""

from abc import ABC, abstractmethod

from goryl.domain.entities import RecommendationRequest, ScoredItem


class RecommenderPort(ABC):
    """Abstraction for the product recommendation engine."""

    @abstractmethod
    async def recommend(self, request: RecommendationRequest) -> list[ScoredItem]:
        """Return ranked item recommendations for a request."""
        ...

    @abstractmethod
    async def similar_items(
        self, item_id: str, limit: int = 10, user_id: str | None = None
    ) -> list[ScoredItem]:
        """Return items similar to ``item_id``, excluding the item itself."""
        ...
