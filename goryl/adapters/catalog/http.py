"""Product store adapter over the storefront's products HTTP API."""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from goryl.adapters.clock import as_utc
from goryl.domain.entities import Item
from goryl.domain.errors import UpstreamUnavailable
from goryl.ports.product_store import ProductStorePort

logger = logging.getLogger(__name__)


def parse_item(data: dict[str, Any]) -> Item:
    """Map a products API payload (camelCase) onto the unified Item shape."""
    created = data.get("createdAt") or data.get("created_at")
    if isinstance(created, (int, float)):
        # Millisecond epoch timestamps from the JS side
        created_at = datetime.fromtimestamp(created / 1000, tz=timezone.utc)
    else:
        created_at = datetime.fromisoformat(str(created).replace("Z", "+00:00"))
    return Item(
        id=str(data["id"]),
        category=data.get("category") or "uncategorized",
        created_at=as_utc(created_at),
        popularity=float(data.get("popularity") or 0.0),
        title=data.get("title") or data.get("name"),
        price=float(data["price"]) if data.get("price") is not None else None,
        seller_id=data.get("sellerId") or data.get("seller_id"),
        image_url=data.get("imageUrl") or data.get("image_url"),
        tags=tuple(data.get("tags") or ()),
    )


class HttpProductStore(ProductStorePort):
    """Read the catalog from ``{base_url}/products``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            logger.debug("Catalog request: GET %s params=%s", path, params)
            try:
                return await client.get(path, params=params)
            except httpx.HTTPError as exc:
                logger.error("Catalog request failed: GET %s: %s", path, exc)
                raise UpstreamUnavailable(f"Catalog unreachable: GET {path}") from exc

    @staticmethod
    def _payload(resp: httpx.Response) -> Any:
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailable(
                f"Catalog returned {resp.status_code}"
            ) from exc
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Catalog sent an unreadable body: %s", resp.request.url)
            raise UpstreamUnavailable("Catalog returned malformed JSON") from exc

    @classmethod
    def _items(cls, resp: httpx.Response) -> list[Item]:
        payload = cls._payload(resp)
        try:
            rows = payload.get("items", []) if isinstance(payload, dict) else payload
            return [parse_item(row) for row in rows]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Catalog sent an unexpected product shape: %r", exc)
            raise UpstreamUnavailable("Catalog returned malformed products") from exc

    async def list_active_items(
        self, limit: int, category: str | None = None
    ) -> list[Item]:
        params: dict[str, Any] = {"limit": limit}
        if category is not None:
            params["category"] = category
        return self._items(await self._get("/products", params=params))

    async def get_item(self, item_id: str) -> Item | None:
        resp = await self._get(f"/products/{item_id}")
        if resp.status_code == 404:
            return None
        payload = self._payload(resp)
        try:
            return parse_item(payload)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Catalog sent an unexpected product shape for %s: %r", item_id, exc)
            raise UpstreamUnavailable("Catalog returned a malformed product") from exc

    async def list_trending_items(self, limit: int) -> list[Item]:
        return self._items(await self._get("/products/trending", params={"limit": limit}))
