"""Personalization facade and service wiring."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from goryl.adapters.catalog.http import HttpProductStore
from goryl.adapters.catalog.memory import InMemoryProductStore
from goryl.adapters.catalog.sql import SqlProductStore
from goryl.adapters.clock import SystemClock
from goryl.adapters.events.dynamodb import DynamoEventStore
from goryl.adapters.events.memory import InMemoryEventStore
from goryl.adapters.events.sql import SqlEventStore
from goryl.config import EventStoreBackend, ProductStoreBackend, Settings
from goryl.database import build_session_factory
from goryl.domain.entities import (
    InteractionEvent,
    InteractionType,
    RecommendationRequest,
    ScoredItem,
    key_part,
)
from goryl.ports.clock import Clock
from goryl.ports.event_store import EventStorePort
from goryl.ports.product_store import ProductStorePort
from goryl.services.aggregator import BehaviorAggregator, ExponentialDecay
from goryl.services.coordinator import CacheRegion, Coordinator, make_key
from goryl.services.recorder import InteractionRecorder
from goryl.services.retriever import RecommendationRetriever
from goryl.services.scoring import ScoringEngine, ScoringWeights
from goryl.services.side_channel import SideChannel

logger = logging.getLogger(__name__)


@dataclass
class PersonalizationService:
    """The three operations exposed to the UI layer, plus their collaborators."""

    recorder: InteractionRecorder
    aggregator: BehaviorAggregator
    retriever: RecommendationRetriever
    coordinator: Coordinator
    side_channel: SideChannel
    cache_ttl: float = 30.0
    engine: AsyncEngine | None = None

    async def record(
        self,
        user_id: str | None,
        item_id: str,
        interaction: InteractionType | str,
        category: str | None = None,
    ) -> InteractionEvent | None:
        event = await self.recorder.record(user_id, item_id, interaction, category=category)
        if event is not None:
            user = key_part("u", user_id)
            for region in (CacheRegion.RECOMMENDATIONS, CacheRegion.SIMILAR):
                self.coordinator.clear(make_key(region, user) + ":")
        return event

    async def get_recommendations(
        self, request: RecommendationRequest, force_refresh: bool = False
    ) -> list[ScoredItem]:
        key = make_key(CacheRegion.RECOMMENDATIONS, request.cache_key())
        return await self.coordinator.get_or_fetch(
            key,
            lambda: self.retriever.recommend(request),
            ttl=self.cache_ttl,
            force_refresh=force_refresh,
        )

    async def get_similar_items(
        self, item_id: str, limit: int = 10, user_id: str | None = None
    ) -> list[ScoredItem]:
        key = make_key(
            CacheRegion.SIMILAR, key_part("u", user_id), key_part("i", item_id), f"l={limit}"
        )
        return await self.coordinator.get_or_fetch(
            key,
            lambda: self.retriever.similar_items(item_id, limit=limit, user_id=user_id),
            ttl=self.cache_ttl,
        )

    async def close(self) -> None:
        await self.coordinator.stop_sweeper()
        await self.side_channel.drain()
        if self.engine is not None:
            await self.engine.dispose()


def _build_event_store(cfg: Settings, session_factory) -> EventStorePort:
    if cfg.event_store_backend is EventStoreBackend.SQL:
        return SqlEventStore(session_factory)
    if cfg.event_store_backend is EventStoreBackend.DYNAMODB:
        return DynamoEventStore(
            table_name=cfg.dynamodb_table,
            region=cfg.aws_region,
            endpoint_url=cfg.dynamodb_endpoint_url,
        )
    return InMemoryEventStore()


def _build_product_store(cfg: Settings, session_factory) -> ProductStorePort:
    if cfg.product_store_backend is ProductStoreBackend.SQL:
        return SqlProductStore(session_factory)
    if cfg.product_store_backend is ProductStoreBackend.HTTP:
        return HttpProductStore(cfg.catalog_base_url, timeout=cfg.http_timeout_seconds)
    return InMemoryProductStore()


def build_service(
    cfg: Settings,
    *,
    events: EventStorePort | None = None,
    products: ProductStorePort | None = None,
    clock: Clock | None = None,
) -> PersonalizationService:
    """Wire the pipeline from settings. Explicit collaborators override config."""
    engine, session_factory = None, None
    needs_sql = (
        events is None and cfg.event_store_backend is EventStoreBackend.SQL
    ) or (products is None and cfg.product_store_backend is ProductStoreBackend.SQL)
    if needs_sql:
        engine, session_factory = build_session_factory(cfg.database_url)

    events = events or _build_event_store(cfg, session_factory)
    products = products or _build_product_store(cfg, session_factory)
    clock = clock or SystemClock()
    side_channel = SideChannel()

    aggregator = BehaviorAggregator(
        events,
        products,
        clock,
        affinity_ttl=cfg.affinity_ttl_seconds,
        item_ttl=cfg.item_signal_ttl_seconds,
        recent_capacity=cfg.recent_items_capacity,
        decay=ExponentialDecay(cfg.decay_half_life_days),
    )
    scoring = ScoringEngine(
        ScoringWeights(
            category=cfg.score_weight_category,
            popularity=cfg.score_weight_popularity,
            recency=cfg.score_weight_recency,
        ),
        recency_cutoff_days=cfg.recency_cutoff_days,
    )
    retriever = RecommendationRetriever(
        products,
        aggregator,
        scoring,
        clock,
        candidate_pool=cfg.candidate_pool_size,
        max_limit=cfg.max_limit,
        timeout=cfg.fetch_timeout_seconds,
    )
    recorder = InteractionRecorder(
        events, aggregator, clock, side_channel, weights=cfg.interaction_weights()
    )
    logger.info(
        "Personalization wired: events=%s products=%s",
        type(events).__name__, type(products).__name__,
    )
    return PersonalizationService(
        recorder=recorder,
        aggregator=aggregator,
        retriever=retriever,
        coordinator=Coordinator(clock, default_ttl=cfg.recommendation_cache_ttl_seconds),
        side_channel=side_channel,
        cache_ttl=cfg.recommendation_cache_ttl_seconds,
        engine=engine,
    )
