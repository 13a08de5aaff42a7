"""Tests for recommendation retrieval across its three modes."""

import asyncio

import pytest

from goryl.adapters.catalog.memory import InMemoryProductStore
from goryl.adapters.events.memory import InMemoryEventStore
from goryl.domain.entities import InteractionEvent, InteractionType, RecommendationRequest
from goryl.domain.errors import ItemNotFound, UpstreamUnavailable, ValidationError
from goryl.services.aggregator import BehaviorAggregator
from goryl.services.retriever import RecommendationRetriever
from goryl.services.scoring import ScoringEngine
from tests.conftest import CATALOG, make_item


class SlowProductStore(InMemoryProductStore):
    async def list_active_items(self, limit, category=None):
        await asyncio.sleep(5)
        return await super().list_active_items(limit, category)


class HangingEventStore(InMemoryEventStore):
    async def query_interactions(self, user_id=None, item_id=None, since=None):
        await asyncio.sleep(5)
        return await super().query_interactions(user_id, item_id, since)


class DuplicatingProductStore(InMemoryProductStore):
    async def list_active_items(self, limit, category=None):
        items = await super().list_active_items(limit, category)
        return items + items


def _build(products, events, clock, **kwargs) -> tuple[RecommendationRetriever, BehaviorAggregator]:
    aggregator = BehaviorAggregator(events, products, clock)
    retriever = RecommendationRetriever(
        products, aggregator, ScoringEngine(), clock, **kwargs
    )
    return retriever, aggregator


@pytest.fixture
def retriever(products, events, clock) -> RecommendationRetriever:
    return _build(products, events, clock)[0]


def _ids(results):
    return [r.item.id for r in results]


async def test_cold_start_ranks_by_popularity_and_recency(retriever):
    results = await retriever.recommend(RecommendationRequest(limit=5))
    assert _ids(results) == ["b1", "b2", "s1", "item42", "b3"]
    assert results[0].score == pytest.approx(48.0)


async def test_new_user_gets_same_order_as_cold_start(retriever):
    results = await retriever.recommend(RecommendationRequest(user_id="u1", limit=5))
    assert _ids(results) == ["b1", "b2", "s1", "item42", "b3"]


async def test_category_filter(retriever):
    results = await retriever.recommend(RecommendationRequest(category="shoes"))
    assert _ids(results) == ["s1", "item42", "s2"]
    assert {r.item.category for r in results} == {"shoes"}


async def test_result_bounded_by_limit_and_max(products, events, clock):
    for i in range(150):
        products.add(make_item(f"bulk{i:03d}", "misc", popularity=i))
    retriever, _ = _build(products, events, clock, max_limit=100)

    assert len(await retriever.recommend(RecommendationRequest(limit=3))) == 3
    assert len(await retriever.recommend(RecommendationRequest(limit=500))) == 100


def test_non_positive_limit_rejected():
    with pytest.raises(ValidationError):
        RecommendationRequest(limit=0)


async def test_duplicate_candidates_are_collapsed(events, clock):
    retriever, _ = _build(DuplicatingProductStore(CATALOG), events, clock)
    results = await retriever.recommend(RecommendationRequest(user_id="u1", limit=50))
    ids = _ids(results)
    assert len(ids) == len(set(ids)) == len(CATALOG)


async def test_ranking_is_stable_across_calls(retriever):
    request = RecommendationRequest(user_id="u1", limit=10)
    first = await retriever.recommend(request)
    second = await retriever.recommend(request)
    assert first == second


async def test_exclude_viewed_drops_recent_items(retriever, events, clock):
    for item_id in ("b1", "s2"):
        await events.append_interaction(
            InteractionEvent("u1", item_id, InteractionType.VIEW, 1.0, clock.now())
        )

    excluded = await retriever.recommend(RecommendationRequest(user_id="u1", limit=10))
    assert not {"b1", "s2"} & set(_ids(excluded))

    kept = await retriever.recommend(
        RecommendationRequest(user_id="u1", limit=10, exclude_viewed=False)
    )
    assert {"b1", "s2"} <= set(_ids(kept))


async def test_candidate_fetch_failure_is_fatal(retriever, products):
    products.fail_with = ConnectionError("catalog down")
    with pytest.raises(UpstreamUnavailable):
        await retriever.recommend(RecommendationRequest(user_id="u1"))


async def test_candidate_fetch_timeout_is_fatal(events, clock):
    retriever, _ = _build(SlowProductStore(CATALOG), events, clock, timeout=0.05)
    with pytest.raises(UpstreamUnavailable):
        await retriever.recommend(RecommendationRequest(user_id="u1"))


async def test_affinity_failure_degrades_to_cold_start(retriever, events):
    events.fail_with = ConnectionError("event store down")
    results = await retriever.recommend(RecommendationRequest(user_id="u1", limit=5))
    assert _ids(results) == ["b1", "b2", "s1", "item42", "b3"]


async def test_hanging_event_store_falls_back_within_timeout(products, clock):
    retriever, _ = _build(products, HangingEventStore(), clock, timeout=0.05)
    loop = asyncio.get_running_loop()
    started = loop.time()
    results = await retriever.recommend(RecommendationRequest(user_id="u1", limit=3))
    assert loop.time() - started < 1.0
    assert _ids(results) == ["b1", "b2", "s1"]


async def test_similar_items_share_category_and_exclude_target(retriever):
    results = await retriever.similar_items("item42", limit=10)
    assert _ids(results) == ["s1", "s2"]


async def test_similar_items_unknown_target(retriever):
    with pytest.raises(ItemNotFound):
        await retriever.similar_items("nope")
