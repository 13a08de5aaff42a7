"""Product store port: read access to the storefront catalog."""

from abc import ABC, abstractmethod

from goryl.domain.entities import Item


class ProductStorePort(ABC):
    """Abstraction for the external product/item store."""

    @abstractmethod
    async def list_active_items(
        self, limit: int, category: str | None = None
    ) -> list[Item]:
        """Return up to ``limit`` active items, newest first."""
        ...

    @abstractmethod
    async def get_item(self, item_id: str) -> Item | None:
        """Return a single item, or None if it does not exist."""
        ...

    async def list_trending_items(self, limit: int) -> list[Item]:
        """Return up to ``limit`` items with the highest stored popularity."""
        items = await self.list_active_items(limit=max(limit * 4, limit))
        items.sort(key=lambda item: (-item.popularity, item.id))
        return items[:limit]
