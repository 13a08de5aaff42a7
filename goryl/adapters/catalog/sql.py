"""SQL-backed product store reading the ``items`` table."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from goryl.adapters.clock import as_utc
from goryl.domain.entities import Item
from goryl.domain.errors import UpstreamUnavailable
from goryl.domain.models import ItemRecord
from goryl.ports.product_store import ProductStorePort

logger = logging.getLogger(__name__)


def _to_item(row: ItemRecord) -> Item:
    return Item(
        id=row.id,
        category=row.category,
        created_at=as_utc(row.created_at),
        popularity=row.popularity or 0.0,
        title=row.title,
        price=row.price,
        seller_id=row.seller_id,
        image_url=row.image_url,
    )


class SqlProductStore(ProductStorePort):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _fetch(self, stmt) -> list[ItemRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Product query failed: %s", exc)
            raise UpstreamUnavailable("Product store query failed") from exc

    async def list_active_items(
        self, limit: int, category: str | None = None
    ) -> list[Item]:
        stmt = select(ItemRecord).where(ItemRecord.is_active.is_(True))
        if category is not None:
            stmt = stmt.where(ItemRecord.category == category)
        stmt = stmt.order_by(ItemRecord.created_at.desc(), ItemRecord.id.desc()).limit(limit)
        return [_to_item(row) for row in await self._fetch(stmt)]

    async def get_item(self, item_id: str) -> Item | None:
        rows = await self._fetch(select(ItemRecord).where(ItemRecord.id == item_id))
        return _to_item(rows[0]) if rows else None

    async def list_trending_items(self, limit: int) -> list[Item]:
        stmt = (
            select(ItemRecord)
            .where(ItemRecord.is_active.is_(True))
            .order_by(ItemRecord.popularity.desc(), ItemRecord.id)
            .limit(limit)
        )
        return [_to_item(row) for row in await self._fetch(stmt)]
