"""End-to-end tests through the personalization facade."""

import asyncio

from goryl.domain.entities import RecommendationRequest
from goryl.services.personalization import PersonalizationService


def _ids(results):
    return [r.item.id for r in results]


async def test_purchase_shifts_ranking_toward_category(service: PersonalizationService):
    request = RecommendationRequest(user_id="u1", limit=5)

    before = await service.get_recommendations(request)
    assert _ids(before) == ["b1", "b2", "s1", "item42", "b3"]
    assert all(r.score < 50 for r in before)

    await service.record("u1", "item42", "purchase")
    await service.side_channel.drain()

    after = await service.get_recommendations(request)
    ids = _ids(after)
    assert ids.index("s1") < ids.index("b1")
    assert "item42" not in ids
    assert after[0].reason == "Matches your interest in shoes"


async def test_anonymous_record_is_a_no_op(service: PersonalizationService, events):
    assert await service.record(None, "s1", "like") is None
    assert events.append_calls == 0


async def test_recommendations_are_cached_per_request(service: PersonalizationService, products):
    request = RecommendationRequest(limit=3)
    first = await service.get_recommendations(request)
    second = await service.get_recommendations(request)
    assert first == second
    assert products.list_calls == 1
    assert service.coordinator.stats.hits == 1


async def test_concurrent_widgets_share_one_pipeline_run(service: PersonalizationService, events):
    request = RecommendationRequest(user_id="u1", limit=5)
    results = await asyncio.gather(*(service.get_recommendations(request) for _ in range(4)))
    assert all(r == results[0] for r in results)
    assert service.coordinator.stats.fetches == 1


async def test_record_clears_only_that_users_cache(service: PersonalizationService):
    await service.get_recommendations(RecommendationRequest(user_id="u1"))
    await service.get_recommendations(RecommendationRequest(user_id="u10"))
    assert len(service.coordinator) == 2

    await service.record("u1", "s1", "view")
    assert len(service.coordinator) == 1


async def test_similar_items_through_facade(service: PersonalizationService):
    results = await service.get_similar_items("b1", limit=5)
    assert _ids(results) == ["b2", "b3"]


async def test_record_clears_that_users_similar_items(service: PersonalizationService):
    await service.get_similar_items("b1", user_id="u1")
    await service.get_similar_items("b1", user_id="u2")
    await service.get_similar_items("b1")
    assert len(service.coordinator) == 3

    await service.record("u1", "b2", "like")
    assert len(service.coordinator) == 2


async def test_user_ids_with_separators_do_not_share_cache_keys(service: PersonalizationService):
    await service.get_recommendations(RecommendationRequest(user_id="a:c=shoes"))
    await service.get_recommendations(RecommendationRequest(user_id="a"))
    assert len(service.coordinator) == 2

    await service.record("a", "s1", "view")
    assert len(service.coordinator) == 1
