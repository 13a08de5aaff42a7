"""Behavior aggregator: per-user affinity and per-item signals folded from events."""

import logging
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from goryl.domain.entities import InteractionEvent, Item, ItemSignal, UserAffinity
from goryl.domain.errors import ItemNotFound, StaleDataWarning, UpstreamUnavailable
from goryl.ports.clock import Clock
from goryl.ports.event_store import EventStorePort
from goryl.ports.product_store import ProductStorePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

DecayFn = Callable[[timedelta], float]


# ── Decay curves ─────────────────────────────────────────────────
# Both are strictly non-increasing in age and return 1.0 at age 0.


class ExponentialDecay:
    """Halve an event's contribution every ``half_life_days``."""

    def __init__(self, half_life_days: float = 14.0) -> None:
        if half_life_days <= 0:
            raise ValueError("half_life_days must be positive")
        self.half_life_days = half_life_days

    def __call__(self, age: timedelta) -> float:
        days = max(0.0, age.total_seconds() / 86_400.0)
        return 0.5 ** (days / self.half_life_days)


class StepDecay:
    """Full weight for a week, half for a month, a quarter after that."""

    def __init__(self, steps: tuple[tuple[float, float], ...] = ((7, 1.0), (30, 0.5))) -> None:
        self.steps = steps
        self.floor = 0.25

    def __call__(self, age: timedelta) -> float:
        days = age.total_seconds() / 86_400.0
        for limit, factor in self.steps:
            if days <= limit:
                return factor
        return self.floor


@dataclass
class _Memo(Generic[T]):
    value: T
    expires_at: datetime
    stale: bool = False


class BehaviorAggregator:
    """
    Memoizes UserAffinity and ItemSignal aggregates with a short TTL.

    On a miss (or after ``invalidate``) the aggregate is recomputed from the
    event store. If the store is unreachable the last computed aggregate is
    served and a StaleDataWarning is logged; only when nothing was ever
    computed does the call fail with UpstreamUnavailable.
    """

    def __init__(
        self,
        events: EventStorePort,
        products: ProductStorePort,
        clock: Clock,
        *,
        affinity_ttl: float = 60.0,
        item_ttl: float = 60.0,
        recent_capacity: int = 50,
        decay: DecayFn | None = None,
    ) -> None:
        if recent_capacity <= 0:
            raise ValueError("recent_capacity must be positive")
        self._events = events
        self._products = products
        self._clock = clock
        self._affinity_ttl = timedelta(seconds=affinity_ttl)
        self._item_ttl = timedelta(seconds=item_ttl)
        self._recent_capacity = recent_capacity
        self._decay = decay or ExponentialDecay()
        self._users: dict[str, _Memo[UserAffinity]] = {}
        self._items: dict[str, _Memo[ItemSignal]] = {}
        self.stale_served = 0

    # ── Invalidation ───────────────────────────────

    def invalidate(self, user_id: str | None = None, item_id: str | None = None) -> None:
        """Expire memoized aggregates. The old values stay as stale fallbacks."""
        if user_id is not None:
            self.invalidate_user(user_id)
        if item_id is not None:
            self.invalidate_item(item_id)

    def invalidate_user(self, user_id: str) -> None:
        memo = self._users.get(user_id)
        if memo:
            memo.stale = True
            logger.debug("Invalidated affinity for user %s", user_id)

    def invalidate_item(self, item_id: str) -> None:
        memo = self._items.get(item_id)
        if memo:
            memo.stale = True
            logger.debug("Invalidated signal for item %s", item_id)

    async def refresh_user(self, user_id: str) -> UserAffinity:
        """Invalidate and immediately recompute a user's affinity."""
        self.invalidate_user(user_id)
        return await self.get_user_affinity(user_id)

    # ── User affinity ──────────────────────────────

    async def get_user_affinity(self, user_id: str) -> UserAffinity:
        now = self._clock.now()
        memo = self._users.get(user_id)
        if memo and not memo.stale and now < memo.expires_at:
            return memo.value

        try:
            affinity = await self._compute_affinity(user_id, now)
        except UpstreamUnavailable as exc:
            if memo is None:
                raise
            self.stale_served += 1
            logger.warning(
                "%s: serving affinity for user %s computed at %s (%s)",
                StaleDataWarning.__name__, user_id, memo.value.computed_at, exc,
            )
            return memo.value

        self._users[user_id] = _Memo(affinity, now + self._affinity_ttl)
        return affinity

    async def _compute_affinity(self, user_id: str, now: datetime) -> UserAffinity:
        events = await self._events.query_interactions(user_id=user_id)
        categories = await self._resolve_categories(events)

        scores: dict[str, float] = {}
        recent: OrderedDict[str, None] = OrderedDict()
        for event in sorted(events, key=lambda e: e.timestamp):
            recent.pop(event.item_id, None)
            recent[event.item_id] = None

            category = categories.get(event.item_id)
            if category is None:
                continue
            contribution = event.weight * self._decay(now - event.timestamp)
            scores[category] = scores.get(category, 0.0) + contribution

        recent_ids = tuple(reversed(recent))[: self._recent_capacity]
        logger.debug(
            "Folded %d events for user %s into %d categories",
            len(events), user_id, len(scores),
        )
        return UserAffinity(
            user_id=user_id,
            category_scores=scores,
            recent_item_ids=recent_ids,
            computed_at=now,
        )

    async def _resolve_categories(self, events: list[InteractionEvent]) -> dict[str, str]:
        """Map item id to category, preferring the category stamped on the event."""
        categories: dict[str, str] = {}
        missing: set[str] = set()
        for event in events:
            if event.category:
                categories.setdefault(event.item_id, event.category)
            else:
                missing.add(event.item_id)

        for item_id in sorted(missing - categories.keys()):
            item = await self._products.get_item(item_id)
            if item is None:
                logger.debug("Skipping events for unknown item %s", item_id)
                continue
            categories[item_id] = item.category
        return categories

    # ── Item signal ────────────────────────────────

    async def get_item_signal(self, item_id: str, item: Item | None = None) -> ItemSignal:
        """
        Return popularity and metadata for an item.

        Popularity is the catalog's stored popularity plus a decayed count of
        recorded interactions, so it never goes negative.
        """
        now = self._clock.now()
        memo = self._items.get(item_id)
        if memo and not memo.stale and now < memo.expires_at:
            return memo.value

        try:
            signal = await self._compute_signal(item_id, item, now)
        except UpstreamUnavailable as exc:
            if memo is None:
                raise
            self.stale_served += 1
            logger.warning(
                "%s: serving signal for item %s computed at %s (%s)",
                StaleDataWarning.__name__, item_id, memo.value.computed_at, exc,
            )
            return memo.value

        self._items[item_id] = _Memo(signal, now + self._item_ttl)
        return signal

    async def _compute_signal(self, item_id: str, item: Item | None, now: datetime) -> ItemSignal:
        if item is None:
            item = await self._products.get_item(item_id)
            if item is None:
                raise ItemNotFound(f"Item {item_id} not found")

        events = await self._events.query_interactions(item_id=item_id)
        decayed = sum(self._decay(now - e.timestamp) for e in events)
        return ItemSignal(
            item_id=item.id,
            category=item.category,
            created_at=item.created_at,
            popularity=max(0.0, item.popularity) + decayed,
            computed_at=now,
        )
