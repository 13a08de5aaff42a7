"""Tests for affinity folding, memoization and the stale fallback."""

from datetime import timedelta

import pytest

from goryl.domain.entities import InteractionEvent, InteractionType
from goryl.domain.errors import UpstreamUnavailable
from goryl.services.aggregator import BehaviorAggregator, ExponentialDecay, StepDecay
from tests.conftest import NOW


def _event(item_id, kind=InteractionType.VIEW, weight=1.0, age_days=0.0, category=None, user="u1"):
    return InteractionEvent(
        user_id=user,
        item_id=item_id,
        type=kind,
        weight=weight,
        timestamp=NOW - timedelta(days=age_days),
        category=category,
    )


@pytest.fixture
def aggregator(events, products, clock) -> BehaviorAggregator:
    return BehaviorAggregator(
        events, products, clock, affinity_ttl=60, item_ttl=60, recent_capacity=3
    )


@pytest.mark.parametrize("decay", [ExponentialDecay(14), StepDecay()])
def test_decay_is_monotonically_decreasing(decay):
    ages = [timedelta(days=d) for d in (0, 1, 7, 8, 30, 31, 90, 365)]
    values = [decay(age) for age in ages]
    assert values[0] == 1.0
    assert all(a >= b for a, b in zip(values, values[1:]))
    assert values[-1] < values[0]


def test_exponential_decay_half_life():
    assert ExponentialDecay(14)(timedelta(days=14)) == pytest.approx(0.5)


async def test_affinity_folds_weighted_and_decayed_scores(aggregator, events):
    await events.append_interaction(_event("s1", InteractionType.PURCHASE, 10.0))
    await events.append_interaction(_event("b1", InteractionType.LIKE, 3.0, age_days=14))

    affinity = await aggregator.get_user_affinity("u1")

    assert affinity.category_scores["shoes"] == pytest.approx(10.0)
    assert affinity.category_scores["bags"] == pytest.approx(1.5)
    assert affinity.top_category() == "shoes"


async def test_event_category_takes_precedence(aggregator, events):
    await events.append_interaction(_event("s1", category="sneakers"))
    affinity = await aggregator.get_user_affinity("u1")
    assert set(affinity.category_scores) == {"sneakers"}


async def test_unknown_items_are_skipped_but_tracked_as_recent(aggregator, events):
    await events.append_interaction(_event("ghost", age_days=1))
    affinity = await aggregator.get_user_affinity("u1")
    assert affinity.category_scores == {}
    assert affinity.recent_item_ids == ("ghost",)


async def test_recent_items_collapse_duplicates_newest_first(aggregator, events):
    for item_id, age in [("s1", 5), ("b1", 4), ("s1", 3), ("b2", 2), ("s2", 1)]:
        await events.append_interaction(_event(item_id, age_days=age))

    affinity = await aggregator.get_user_affinity("u1")

    # capacity is 3; s1 moved forward by its second interaction, b1 fell off
    assert affinity.recent_item_ids == ("s2", "b2", "s1")


async def test_affinity_is_memoized_until_ttl(aggregator, events, clock):
    await aggregator.get_user_affinity("u1")
    await aggregator.get_user_affinity("u1")
    assert events.query_calls == 1

    clock.advance(61)
    await aggregator.get_user_affinity("u1")
    assert events.query_calls == 2


async def test_invalidate_forces_recompute(aggregator, events):
    first = await aggregator.get_user_affinity("u1")
    assert first.is_empty

    await events.append_interaction(_event("s1", InteractionType.SAVE, 4.0))
    assert (await aggregator.get_user_affinity("u1")).is_empty

    aggregator.invalidate(user_id="u1")
    refreshed = await aggregator.get_user_affinity("u1")
    assert refreshed.category_scores == {"shoes": pytest.approx(4.0)}


async def test_stale_affinity_served_when_store_down(aggregator, events, caplog):
    await events.append_interaction(_event("s1", InteractionType.LIKE, 3.0))
    computed = await aggregator.get_user_affinity("u1")

    events.fail_with = ConnectionError("dynamo down")
    aggregator.invalidate_user("u1")
    with caplog.at_level("WARNING"):
        served = await aggregator.get_user_affinity("u1")

    assert served is computed
    assert aggregator.stale_served == 1
    assert "StaleDataWarning" in caplog.text


async def test_store_down_without_prior_aggregate_fails(aggregator, events):
    events.fail_with = ConnectionError("dynamo down")
    with pytest.raises(UpstreamUnavailable):
        await aggregator.get_user_affinity("u1")


async def test_item_signal_adds_decayed_interactions(aggregator, events):
    baseline = await aggregator.get_item_signal("s1")
    assert baseline.popularity == pytest.approx(80.0)
    assert baseline.category == "shoes"

    await events.append_interaction(_event("s1", user="u1"))
    await events.append_interaction(_event("s1", user="u2", age_days=14))
    aggregator.invalidate(item_id="s1")

    signal = await aggregator.get_item_signal("s1")
    assert signal.popularity == pytest.approx(81.5)
    assert signal.popularity >= baseline.popularity
