"""Unit tests for the scoring engine."""

from datetime import timedelta

import pytest

from goryl.domain.entities import ItemSignal, UserAffinity
from goryl.domain.errors import ValidationError
from goryl.services.scoring import ScoringEngine, ScoringWeights
from tests.conftest import NOW, make_item


def _pairs(*items):
    return [(item, ItemSignal.from_item(item)) for item in items]


@pytest.fixture
def engine() -> ScoringEngine:
    return ScoringEngine(ScoringWeights(0.5, 0.3, 0.2), recency_cutoff_days=90)


def test_weights_must_sum_to_one():
    with pytest.raises(ValidationError):
        ScoringWeights(0.5, 0.5, 0.5)
    with pytest.raises(ValidationError):
        ScoringWeights(1.2, -0.1, -0.1)


def test_score_is_deterministic(engine: ScoringEngine):
    affinity = UserAffinity("u1", {"shoes": 4.0, "bags": 2.0})
    item = make_item("s1", "shoes", popularity=40)
    signal = ItemSignal.from_item(item)
    scores = {
        engine.score(affinity, signal, item, now=NOW, max_popularity=80) for _ in range(20)
    }
    assert len(scores) == 1


def test_score_components_and_scale(engine: ScoringEngine):
    affinity = UserAffinity("u1", {"shoes": 4.0, "bags": 2.0})
    item = make_item("b1", "bags", popularity=40, age_days=45)
    parts = engine.breakdown(
        affinity, ItemSignal.from_item(item), item, now=NOW, max_popularity=80
    )
    assert parts.category == pytest.approx(0.5)
    assert parts.popularity == pytest.approx(0.5)
    assert parts.recency == pytest.approx(0.5)
    assert parts.total == pytest.approx(50.0)


def test_new_user_gets_zero_category_component(engine: ScoringEngine):
    item = make_item("s1", "shoes", popularity=10, age_days=0)
    parts = engine.breakdown(
        UserAffinity.empty("u1"), ItemSignal.from_item(item), item, now=NOW, max_popularity=10
    )
    assert parts.category == 0.0
    assert parts.total == pytest.approx(50.0)


def test_recency_floors_at_zero_past_cutoff(engine: ScoringEngine):
    assert engine.recency_component(NOW - timedelta(days=120), NOW) == 0.0
    assert engine.recency_component(NOW - timedelta(days=90), NOW) == 0.0
    assert engine.recency_component(NOW + timedelta(days=1), NOW) == 1.0


def test_score_bounded_between_0_and_100(engine: ScoringEngine):
    affinity = UserAffinity("u1", {"shoes": 1.0})
    item = make_item("s1", "shoes", popularity=500, age_days=0)
    score = engine.score(
        affinity, ItemSignal.from_item(item), item, now=NOW, max_popularity=100
    )
    assert score == pytest.approx(100.0)

    stale = make_item("x", "toys", popularity=0, age_days=365)
    assert engine.score(affinity, ItemSignal.from_item(stale), stale, now=NOW, max_popularity=0) == 0.0


def test_rank_breaks_ties_by_item_id(engine: ScoringEngine):
    items = [make_item(i, "shoes", popularity=5) for i in ("c", "a", "b")]
    ranked = engine.rank(UserAffinity.empty(), _pairs(*items), now=NOW)
    assert [s.item.id for s in ranked] == ["a", "b", "c"]


def test_rank_orders_by_score_and_explains(engine: ScoringEngine):
    affinity = UserAffinity("u1", {"shoes": 10.0})
    shoe = make_item("s1", "shoes", popularity=10)
    bag = make_item("b1", "bags", popularity=100)
    ranked = engine.rank(affinity, _pairs(bag, shoe), now=NOW)
    assert [s.item.id for s in ranked] == ["s1", "b1"]
    assert ranked[0].reason == "Matches your interest in shoes"
    assert ranked[1].reason == "Popular choice"
