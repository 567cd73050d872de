from starlette.requests import Request

from longform.app.services.metrics import MetricsState
from longform.app.services.rate_limit import SlidingWindowRateLimiter, get_client_ip


class Clock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def request_with(headers, client=("1.2.3.4", 1234)):
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": headers,
            "client": client,
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )


def test_sliding_window_allows_again_after_window():
    clock = Clock()
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=10, clock=clock)

    assert limiter.check("a").allowed
    clock.now = 1
    second = limiter.check("a")
    assert second.allowed
    assert second.remaining == 0
    blocked = limiter.check("a")
    assert not blocked.allowed
    assert blocked.reset_at == 10
    assert limiter.check("b").allowed

    clock.now = 10.5
    assert limiter.check("a").allowed


def test_records_metrics():
    metrics = MetricsState()
    limiter = SlidingWindowRateLimiter(metrics, max_requests=1, window_seconds=60, clock=Clock())

    limiter.check("a")
    limiter.check("a")

    assert metrics.rate_limit == {"requests": 2, "hits": 1}


def test_client_ip_prefers_forwarded_header():
    forwarded = request_with([(b"x-forwarded-for", b"9.9.9.9, 10.0.0.1")])
    direct = request_with([])

    assert get_client_ip(forwarded) == "9.9.9.9"
    assert get_client_ip(direct) == "1.2.3.4"
