"""SQL-backed event store (PostgreSQL in production, SQLite in tests)."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from goryl.adapters.clock import as_utc
from goryl.domain.entities import InteractionEvent, InteractionType
from goryl.domain.errors import UpstreamUnavailable
from goryl.domain.models import InteractionRecord
from goryl.ports.event_store import EventStorePort, check_query_target

logger = logging.getLogger(__name__)


def _to_event(row: InteractionRecord) -> InteractionEvent:
    return InteractionEvent(
        user_id=row.user_id,
        item_id=row.item_id,
        type=InteractionType(row.interaction_type),
        weight=row.weight,
        timestamp=as_utc(row.created_at),
        category=row.category,
    )


class SqlEventStore(EventStorePort):
    """Persist interactions to the ``interactions`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append_interaction(self, event: InteractionEvent) -> None:
        """Insert one row and commit before returning."""
        record = InteractionRecord(
            user_id=event.user_id,
            item_id=event.item_id,
            interaction_type=event.type.value,
            weight=event.weight,
            category=event.category,
            created_at=event.timestamp,
        )
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to append interaction for %s: %s", event.user_id, exc)
            raise UpstreamUnavailable("Event store write failed") from exc

    async def query_interactions(
        self,
        user_id: str | None = None,
        item_id: str | None = None,
        since: datetime | None = None,
    ) -> list[InteractionEvent]:
        check_query_target(user_id, item_id)
        if user_id is not None:
            stmt = select(InteractionRecord).where(InteractionRecord.user_id == user_id)
        else:
            stmt = select(InteractionRecord).where(InteractionRecord.item_id == item_id)
        if since is not None:
            stmt = stmt.where(InteractionRecord.created_at >= since)
        stmt = stmt.order_by(InteractionRecord.created_at, InteractionRecord.id)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to query interactions: %s", exc)
            raise UpstreamUnavailable("Event store query failed") from exc
        return [_to_event(row) for row in rows]
