import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable

from longform.app.services.metrics import MetricsState
from longform.app.services.store import KeyValueStore

log = logging.getLogger("longform.value_cache")

Loader = Callable[[], Awaitable[Any]]
TTL = int | Callable[[Any], int]


class ValueCache:
    """
    TTL cache-or-load over a shared store with single-flight loads.

    Concurrent misses on the same key inside this process share one loader
    task. The check of the in-flight map and the registration of a new task
    happen with no await in between, which is what makes the coalescing hold
    under cooperative scheduling. Other processes may still load the same key;
    the shared store is last-writer-wins.
    """

    def __init__(self, store: KeyValueStore, metrics: MetricsState) -> None:
        self.store = store
        self.metrics = metrics
        self._in_flight: dict[str, asyncio.Task] = {}

    async def get_or_load(self, key: str, loader: Loader, ttl_seconds: TTL) -> Any:
        cached = await self.store.get(key)
        if cached is not None:
            self.metrics.record_cache_hit()
            log.debug("cache hit key=%s", key)
            return cached

        self.metrics.record_cache_miss()
        pending = self._in_flight.get(key)
        if pending is not None:
            self.metrics.record_cache_join()
            log.debug("cache join key=%s", key)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._load(key, loader, ttl_seconds))
        self._in_flight[key] = task
        task.add_done_callback(functools.partial(self._settle, key))
        # A cancelled caller only detaches; the load keeps running and still
        # fills the cache for whoever asks next.
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: Loader, ttl_seconds: TTL) -> Any:
        try:
            value = await loader()
            if callable(ttl_seconds):
                ttl_seconds = ttl_seconds(value)
            await self.store.set(key, value, ttl_seconds)
        except Exception:
            self.metrics.record_cache_error()
            log.debug("cache load failed key=%s", key, exc_info=True)
            raise
        self.metrics.record_cache_store()
        log.debug("cache store key=%s ttl=%s", key, ttl_seconds)
        return value

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Retrieve the exception so a load nobody waits for anymore is not
            # reported as "never retrieved".
            task.exception()

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def peek(self, key: str) -> Any | None:
        return await self.store.get(key)

    async def invalidate(self, key: str) -> None:
        await self.store.delete(key)
