"""In-process event store, used for tests and single-node demos."""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime

from goryl.domain.entities import InteractionEvent
from goryl.domain.errors import UpstreamUnavailable
from goryl.ports.event_store import EventStorePort, check_query_target

logger = logging.getLogger(__name__)


class InMemoryEventStore(EventStorePort):
    """
    Append-only event log held in process memory.

    Set ``fail_with`` to an exception to simulate an unreachable store:
    every call then raises UpstreamUnavailable chained to it.
    """

    def __init__(self) -> None:
        self._by_user: dict[str, list[InteractionEvent]] = defaultdict(list)
        self._by_item: dict[str, list[InteractionEvent]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self.fail_with: Exception | None = None
        self.append_calls = 0
        self.query_calls = 0

    def _check_available(self) -> None:
        if self.fail_with is not None:
            raise UpstreamUnavailable("In-memory event store is offline") from self.fail_with

    async def append_interaction(self, event: InteractionEvent) -> None:
        self.append_calls += 1
        self._check_available()
        async with self._lock:
            self._by_user[event.user_id].append(event)
            self._by_item[event.item_id].append(event)
        logger.debug(
            "Appended %s by %s on %s", event.type.value, event.user_id, event.item_id
        )

    async def query_interactions(
        self,
        user_id: str | None = None,
        item_id: str | None = None,
        since: datetime | None = None,
    ) -> list[InteractionEvent]:
        check_query_target(user_id, item_id)
        self.query_calls += 1
        self._check_available()
        if user_id is not None:
            source = self._by_user.get(user_id, [])
        else:
            source = self._by_item.get(item_id, [])
        events = sorted(source, key=lambda e: e.timestamp)
        if since is not None:
            events = [e for e in events if e.timestamp >= since]
        return events
