"""In-process product store."""

from collections.abc import Iterable

from goryl.domain.entities import Item
from goryl.domain.errors import UpstreamUnavailable
from goryl.ports.product_store import ProductStorePort


class InMemoryProductStore(ProductStorePort):
    """Holds a fixed catalog in a dict. ``fail_with`` simulates an outage."""

    def __init__(self, items: Iterable[Item] = ()) -> None:
        self._items: dict[str, Item] = {item.id: item for item in items}
        self.fail_with: Exception | None = None
        self.list_calls = 0

    def _check_available(self) -> None:
        if self.fail_with is not None:
            raise UpstreamUnavailable("In-memory product store is offline") from self.fail_with

    def add(self, item: Item) -> None:
        self._items[item.id] = item

    async def list_active_items(
        self, limit: int, category: str | None = None
    ) -> list[Item]:
        self.list_calls += 1
        self._check_available()
        items = [
            item for item in self._items.values()
            if category is None or item.category == category
        ]
        items.sort(key=lambda item: (item.created_at, item.id), reverse=True)
        return items[:limit]

    async def get_item(self, item_id: str) -> Item | None:
        self._check_available()
        return self._items.get(item_id)
