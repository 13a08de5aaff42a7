"""Recommendation retriever: candidate fetch, scoring and truncation."""

import asyncio
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import TypeVar

from goryl.domain.entities import (
    Item,
    ItemSignal,
    RecommendationMode,
    RecommendationRequest,
    ScoredItem,
    UserAffinity,
)
from goryl.domain.errors import ItemNotFound, UpstreamUnavailable, ValidationError
from goryl.ports.clock import Clock
from goryl.ports.product_store import ProductStorePort
from goryl.ports.recommender import RecommenderPort
from goryl.services.aggregator import BehaviorAggregator
from goryl.services.scoring import ScoringEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Stage(str, Enum):
    CANDIDATE_FETCH = "candidate_fetch"
    AFFINITY_LOOKUP = "affinity_lookup"
    SCORE_AND_RANK = "score_and_rank"
    FILTER_AND_TRUNCATE = "filter_and_truncate"
    DONE = "done"


def dedupe(items: list[Item]) -> list[Item]:
    """Drop repeated item ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[Item] = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique


class RecommendationRetriever(RecommenderPort):
    """
    Produces ranked, de-duplicated, size-bounded recommendation lists.

    Each call runs the full pipeline once with no internal retries:
      CANDIDATE_FETCH -> AFFINITY_LOOKUP -> SCORE_AND_RANK
      -> FILTER_AND_TRUNCATE -> DONE

    A failed or timed-out candidate fetch fails the call with
    UpstreamUnavailable. A failed affinity lookup degrades to empty affinity.
    """

    def __init__(
        self,
        products: ProductStorePort,
        aggregator: BehaviorAggregator,
        scoring: ScoringEngine,
        clock: Clock,
        *,
        candidate_pool: int = 500,
        max_limit: int = 100,
        timeout: float = 3.0,
    ) -> None:
        self._products = products
        self._aggregator = aggregator
        self._scoring = scoring
        self._clock = clock
        self._candidate_pool = candidate_pool
        self._max_limit = max_limit
        self._timeout = timeout

    def clamp_limit(self, limit: int) -> int:
        if limit <= 0:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")
        return min(limit, self._max_limit)

    # ── Stages ─────────────────────────────────────

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._timeout)

    async def _fetch_candidates(self, request: RecommendationRequest) -> list[Item]:
        mode = request.mode
        if mode is RecommendationMode.COLD_START:
            source = self._products.list_trending_items(self._candidate_pool)
        else:
            source = self._products.list_active_items(
                self._candidate_pool, category=request.category
            )
        try:
            items = await self._bounded(source)
        except asyncio.TimeoutError as exc:
            logger.error("Candidate fetch timed out after %.1fs", self._timeout)
            raise UpstreamUnavailable("Product store timed out") from exc
        return dedupe(items)

    async def _lookup_affinity(self, user_id: str | None) -> UserAffinity:
        if not user_id:
            return UserAffinity.empty()
        try:
            return await self._bounded(self._aggregator.get_user_affinity(user_id))
        except (UpstreamUnavailable, asyncio.TimeoutError) as exc:
            logger.warning(
                "Affinity lookup failed for user %s, ranking without it: %r", user_id, exc
            )
            return UserAffinity.empty(user_id)

    async def _signals(self, items: list[Item]) -> list[tuple[Item, ItemSignal]]:
        # Lookups run concurrently, so the whole stage is bounded by one timeout
        results = await asyncio.gather(
            *(self._bounded(self._aggregator.get_item_signal(item.id, item)) for item in items),
            return_exceptions=True,
        )
        pairs: list[tuple[Item, ItemSignal]] = []
        for item, result in zip(items, results):
            if isinstance(result, (UpstreamUnavailable, ItemNotFound, asyncio.TimeoutError)):
                logger.debug("Using stored popularity for %s: %r", item.id, result)
                result = ItemSignal.from_item(item)
            elif isinstance(result, BaseException):
                raise result
            pairs.append((item, result))
        return pairs

    # ── Public API ─────────────────────────────────

    async def recommend(self, request: RecommendationRequest) -> list[ScoredItem]:
        limit = self.clamp_limit(request.limit)
        mode = request.mode

        logger.debug("[%s] %s mode=%s", request.cache_key(), Stage.CANDIDATE_FETCH.value, mode.value)
        candidates = await self._fetch_candidates(request)

        logger.debug("[%s] %s", request.cache_key(), Stage.AFFINITY_LOOKUP.value)
        affinity = await self._lookup_affinity(request.user_id)

        logger.debug("[%s] %s candidates=%d", request.cache_key(), Stage.SCORE_AND_RANK.value, len(candidates))
        ranked = self._scoring.rank(
            affinity, await self._signals(candidates), now=self._clock.now()
        )

        logger.debug("[%s] %s", request.cache_key(), Stage.FILTER_AND_TRUNCATE.value)
        if request.exclude_viewed and request.user_id:
            seen = set(affinity.recent_item_ids)
            ranked = [s for s in ranked if s.item.id not in seen]
        result = ranked[:limit]

        logger.info(
            "Recommendations: mode=%s user=%s category=%s returned=%d",
            mode.value, request.user_id, request.category, len(result),
        )
        logger.debug("[%s] %s", request.cache_key(), Stage.DONE.value)
        return result

    async def similar_items(
        self, item_id: str, limit: int = 10, user_id: str | None = None
    ) -> list[ScoredItem]:
        """Rank items sharing the target's category, excluding the target."""
        limit = self.clamp_limit(limit)
        try:
            target = await self._bounded(self._products.get_item(item_id))
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailable("Product store timed out") from exc
        if target is None:
            raise ItemNotFound(f"Item {item_id} not found")

        request = RecommendationRequest(
            user_id=user_id, category=target.category, limit=limit, exclude_viewed=False
        )
        candidates = [c for c in await self._fetch_candidates(request) if c.id != target.id]
        affinity = await self._lookup_affinity(user_id)
        ranked = self._scoring.rank(
            affinity, await self._signals(candidates), now=self._clock.now()
        )
        logger.info(
            "Similar items: item=%s category=%s returned=%d",
            item_id, target.category, min(len(ranked), limit),
        )
        return ranked[:limit]
