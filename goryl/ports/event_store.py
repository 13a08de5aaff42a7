"""Event store port: durable, append-only interaction log."""

from abc import ABC, abstractmethod
from datetime import datetime

from goryl.domain.entities import InteractionEvent


class EventStorePort(ABC):
    """Abstraction for interaction event persistence."""

    @abstractmethod
    async def append_interaction(self, event: InteractionEvent) -> None:
        """Durably append one event. Raises UpstreamUnavailable on failure."""
        ...

    @abstractmethod
    async def query_interactions(
        self,
        user_id: str | None = None,
        item_id: str | None = None,
        since: datetime | None = None,
    ) -> list[InteractionEvent]:
        """
        Return recorded events for exactly one user or one item, oldest first.

        Raises UpstreamUnavailable if the store cannot be reached.
        """
        ...


def check_query_target(user_id: str | None, item_id: str | None) -> None:
    """Adapters share this guard: a query targets one user or one item."""
    if (user_id is None) == (item_id is None):
        raise ValueError("Exactly one of user_id or item_id must be given")
