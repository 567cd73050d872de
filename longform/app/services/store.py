import time
from typing import Any, Protocol


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """
    Very simple in-memory TTL store. Stands in for a shared cache; values
    are kept as-is, so callers should store JSON-shaped data.
    """

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def _prune(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            self._entries.pop(key, None)

    async def get(self, key: str) -> Any | None:
        self._prune()
        hit = self._entries.get(key)
        if not hit:
            return None
        return hit[1]

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def ttl(self, key: str) -> float | None:
        hit = self._entries.get(key)
        if not hit:
            return None
        return hit[0] - self._clock()

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._prune()
        return len(self._entries)
