import time
from collections import deque
from dataclasses import dataclass

from fastapi import Request

from longform.app import config
from longform.app.services.metrics import MetricsState


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


def get_client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class SlidingWindowRateLimiter:
    def __init__(
        self,
        metrics: MetricsState | None = None,
        max_requests: int | None = None,
        window_seconds: int | None = None,
        clock=time.time,
    ) -> None:
        self.metrics = metrics
        self.max_requests = max_requests or config.RATE_LIMIT_MAX_REQUESTS
        self.window_seconds = window_seconds or config.RATE_LIMIT_WINDOW_SECONDS
        self._clock = clock
        self._buckets: dict[str, deque] = {}

    def check(self, identity: str) -> RateLimitResult:
        now_ts = self._clock()
        if self.metrics:
            self.metrics.record_rate_limit_request()
        bucket = self._buckets.get(identity)
        if bucket is None:
            bucket = deque()
            self._buckets[identity] = bucket

        cutoff = now_ts - self.window_seconds
        while bucket and bucket[0] < cutoff:
            bucket.popleft()

        if len(bucket) >= self.max_requests:
            if self.metrics:
                self.metrics.record_rate_limit_hit()
            return RateLimitResult(False, 0, bucket[0] + self.window_seconds)

        bucket.append(now_ts)
        return RateLimitResult(True, self.max_requests - len(bucket), bucket[0] + self.window_seconds)

    def clear(self) -> None:
        self._buckets.clear()
