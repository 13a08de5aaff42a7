"""
Client cache / coordinator.

A short-TTL in-memory cache with request coalescing: at most one fetch is
outstanding per key, and every concurrent caller for that key awaits the
same result. Failures are never cached and reach every coalesced caller.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from goryl.ports.clock import Clock

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


class CacheRegion(str, Enum):
    PRODUCTS = "products"
    PROFILES = "profiles"
    FEEDS = "feeds"
    RECOMMENDATIONS = "recommendations"
    SIMILAR = "similar"


def make_key(region: CacheRegion | str, *parts: object) -> str:
    """Build ``region:part1:part2`` keys so ``clear(region)`` hits a whole region."""
    prefix = region.value if isinstance(region, CacheRegion) else str(region)
    return ":".join([prefix, *(str(p) for p in parts)])


@dataclass
class CacheEntry:
    key: str
    payload: Any
    expires_at: datetime


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    stale: int = 0
    errors: int = 0
    fetches: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


@dataclass
class _InFlight:
    task: asyncio.Task
    cacheable: bool = field(default=True)


class Coordinator:
    """Owns the cache map and the in-flight map. Construct one per scope."""

    def __init__(self, clock: Clock, default_ttl: float = 30.0) -> None:
        self._clock = clock
        self._default_ttl = default_ttl
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, _InFlight] = {}
        self._sweeper: asyncio.Task | None = None
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock.now() < entry.expires_at

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Fetcher,
        ttl: float | None = None,
        force_refresh: bool = False,
    ) -> Any:
        """
        Return the cached payload for ``key`` or fetch it.

        ``force_refresh`` skips a fresh cache entry but still joins an
        outstanding fetch for the same key.
        """
        entry = self._entries.get(key)
        if entry is not None and not force_refresh:
            if self._clock.now() < entry.expires_at:
                self.stats.hits += 1
                return entry.payload
            self.stats.stale += 1
            del self._entries[key]

        pending = self._in_flight.get(key)
        if pending is not None:
            self.stats.coalesced += 1
            logger.debug("Coalescing request for %s", key)
            return await asyncio.shield(pending.task)

        self.stats.misses += 1
        task = asyncio.get_running_loop().create_task(
            self._fetch(key, fetcher, self._default_ttl if ttl is None else ttl),
            name=f"coordinator:{key}",
        )
        task.add_done_callback(_consume_exception)
        self._in_flight[key] = _InFlight(task)
        # Callers may be cancelled; the fetch itself runs to completion
        return await asyncio.shield(task)

    async def _fetch(self, key: str, fetcher: Fetcher, ttl: float) -> Any:
        self.stats.fetches += 1
        try:
            payload = await fetcher()
        except Exception:
            self.stats.errors += 1
            logger.warning("Fetch failed for %s; not caching", key)
            raise
        finally:
            flight = self._in_flight.pop(key, None)

        if flight is None or flight.cacheable:
            expires_at = self._clock.now() + timedelta(seconds=ttl)
            self._entries[key] = CacheEntry(key, payload, expires_at)
        else:
            logger.debug("Dropping result for %s cleared mid-flight", key)
        return payload

    # ── Invalidation ───────────────────────────────

    def clear(self, prefix: str = "") -> int:
        """Remove every entry whose key starts with ``prefix``. Returns the count."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        for key, flight in self._in_flight.items():
            if key.startswith(prefix):
                flight.cacheable = False
        if doomed:
            logger.debug("Cleared %d cache entries with prefix '%s'", len(doomed), prefix)
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock.now()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    # ── Periodic sweep ─────────────────────────────

    def start_sweeper(self, prefixes: Iterable[str], interval: float) -> asyncio.Task:
        """Clear whole regions every ``interval`` seconds, regardless of TTL."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        regions = list(prefixes)
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_forever(regions, interval), name="coordinator:sweeper"
        )
        logger.info("Cache sweeper started: regions=%s interval=%.0fs", regions, interval)
        return self._sweeper

    async def _sweep_forever(self, prefixes: list[str], interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = sum(self.clear(prefix) for prefix in prefixes)
            removed += self.purge_expired()
            logger.debug("Cache sweep removed %d entries", removed)

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None
        logger.info("Cache sweeper stopped")


def _consume_exception(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled; mark the error as retrieved
    if not task.cancelled():
        task.exception()
