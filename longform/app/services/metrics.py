import time
from datetime import datetime, timezone
from typing import Any


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MetricsState:
    """
    Process-scoped counters. Built once per app (or per test) and passed to
    the components that record into it; nothing here is a module global.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.data_api_calls: dict[str, int] = {}
        self.cache = {"hits": 0, "misses": 0, "stores": 0, "joins": 0, "errors": 0}
        self.rate_limit = {"requests": 0, "hits": 0}
        self.quota = {"cooling_events": 0}
        self.last_reset = time.time()

    def record_data_api_call(self, endpoint: str) -> None:
        self.data_api_calls[endpoint] = self.data_api_calls.get(endpoint, 0) + 1

    def record_cache_hit(self) -> None:
        self.cache["hits"] += 1

    def record_cache_miss(self) -> None:
        self.cache["misses"] += 1

    def record_cache_store(self) -> None:
        self.cache["stores"] += 1

    def record_cache_join(self) -> None:
        self.cache["joins"] += 1

    def record_cache_error(self) -> None:
        self.cache["errors"] += 1

    def record_rate_limit_request(self) -> None:
        self.rate_limit["requests"] += 1

    def record_rate_limit_hit(self) -> None:
        self.rate_limit["hits"] += 1

    def record_quota_cooling_event(self) -> None:
        self.quota["cooling_events"] += 1

    def total_data_api_calls(self) -> int:
        return sum(self.data_api_calls.values())

    def snapshot(self) -> dict[str, Any]:
        return {
            "generatedAt": _iso(time.time()),
            "lastReset": _iso(self.last_reset),
            "dataApiCalls": dict(self.data_api_calls),
            "cache": dict(self.cache),
            "rateLimit": dict(self.rate_limit),
            "quota": dict(self.quota),
        }
