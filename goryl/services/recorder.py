"""Interaction recorder: validates and durably appends user actions."""

import asyncio
import logging

from goryl.domain.entities import (
    DEFAULT_INTERACTION_WEIGHTS,
    InteractionEvent,
    InteractionType,
)
from goryl.domain.errors import ValidationError
from goryl.ports.clock import Clock
from goryl.ports.event_store import EventStorePort
from goryl.services.aggregator import BehaviorAggregator
from goryl.services.side_channel import SideChannel

logger = logging.getLogger(__name__)


class InteractionRecorder:
    """
    Record interactions for signed-in users.

    Anonymous calls (no user id) are accepted and dropped. The append is
    awaited before returning; aggregate invalidation runs on the side
    channel and never delays or fails the caller.
    """

    def __init__(
        self,
        events: EventStorePort,
        aggregator: BehaviorAggregator,
        clock: Clock,
        side_channel: SideChannel,
        weights: dict[str, float] | None = None,
    ) -> None:
        self._events = events
        self._aggregator = aggregator
        self._clock = clock
        self._side_channel = side_channel
        self._weights = {**DEFAULT_INTERACTION_WEIGHTS, **(weights or {})}
        self._user_locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def tracked_users(self) -> int:
        """Users with an append in progress or queued."""
        return len(self._user_locks)

    def weight_for(self, interaction: InteractionType) -> float:
        return self._weights[interaction.value]

    async def record(
        self,
        user_id: str | None,
        item_id: str,
        interaction: InteractionType | str,
        category: str | None = None,
    ) -> InteractionEvent | None:
        """Append one event. Returns it, or None for anonymous users."""
        if not user_id:
            logger.debug("Ignoring anonymous %s on %s", interaction, item_id)
            return None
        if not item_id or not str(item_id).strip():
            raise ValidationError("item_id must be a non-empty string")
        kind = InteractionType.parse(interaction)

        # Per-user ordering: appends for one user land in call order
        lock, waiting = self._user_locks.get(user_id, (asyncio.Lock(), 0))
        self._user_locks[user_id] = (lock, waiting + 1)
        try:
            async with lock:
                event = InteractionEvent(
                    user_id=user_id,
                    item_id=item_id,
                    type=kind,
                    weight=self.weight_for(kind),
                    timestamp=self._clock.now(),
                    category=category,
                )
                await self._events.append_interaction(event)
        finally:
            lock, waiting = self._user_locks[user_id]
            if waiting == 1:
                del self._user_locks[user_id]
            else:
                self._user_locks[user_id] = (lock, waiting - 1)

        logger.info("Recorded %s: user=%s item=%s", kind.value, user_id, item_id)
        self._side_channel.submit(
            self._invalidate(user_id, item_id), label=f"invalidate:{user_id}:{item_id}"
        )
        return event

    async def _invalidate(self, user_id: str, item_id: str) -> None:
        self._aggregator.invalidate(user_id=user_id, item_id=item_id)
