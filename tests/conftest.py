from datetime import datetime, timedelta, timezone

import pytest

from goryl.adapters.catalog.memory import InMemoryProductStore
from goryl.adapters.clock import ManualClock
from goryl.adapters.events.memory import InMemoryEventStore
from goryl.config import Settings
from goryl.domain.entities import Item
from goryl.services.personalization import build_service

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_item(
    item_id: str,
    category: str,
    popularity: float = 0.0,
    age_days: float = 9.0,
    **extra,
) -> Item:
    return Item(
        id=item_id,
        category=category,
        created_at=NOW - timedelta(days=age_days),
        popularity=popularity,
        **extra,
    )


# Without affinity, score = 30 * pop / 100 + 20 * 0.9 (all items are 9 days old):
#   b1 48, b2 45, s1 42, item42 39, b3 36, s2 33
CATALOG = [
    make_item("b1", "bags", 100, title="Leather tote"),
    make_item("b2", "bags", 90),
    make_item("s1", "shoes", 80),
    make_item("item42", "shoes", 70),
    make_item("b3", "bags", 60),
    make_item("s2", "shoes", 50),
]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(NOW)


@pytest.fixture
def products() -> InMemoryProductStore:
    return InMemoryProductStore(CATALOG)


@pytest.fixture
def events() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        affinity_ttl_seconds=60,
        item_signal_ttl_seconds=60,
        recommendation_cache_ttl_seconds=30,
        fetch_timeout_seconds=1.0,
    )


@pytest.fixture
def service(test_settings, events, products, clock):
    return build_service(test_settings, events=events, products=products, clock=clock)
