"""레이트 리미터 유닛 테스트"""
import json
from unittest.mock import MagicMock

import pytest

from eventvista.core.exceptions import StoreConnectionException
from eventvista.engine import RateLimiter, rate_limit_headers, rate_limit_response


class TestRateLimiter:
    """고정 윈도우 카운터"""

    def test_allows_up_to_limit(self, store, clock):
        limiter = RateLimiter(store, "search", limit=3, window_seconds=900, clock=clock)
        results = [limiter.check("1.2.3.4") for _ in range(3)]
        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]

    def test_rejects_limit_plus_one(self, store, clock):
        limiter = RateLimiter(store, "search", limit=100, window_seconds=900, clock=clock)
        for _ in range(100):
            assert limiter.check("1.2.3.4").allowed
        rejected = limiter.check("1.2.3.4")
        assert rejected.allowed is False
        assert rejected.remaining == 0
        assert 1 <= rejected.retry_after <= 900

    def test_window_resets(self, store, clock):
        """윈도우가 지나면 다시 허용"""
        limiter = RateLimiter(store, "search", limit=1, window_seconds=60, clock=clock)
        assert limiter.check("c").allowed
        assert not limiter.check("c").allowed
        clock.advance(60)
        assert limiter.check("c").allowed

    def test_retry_after_shrinks_with_time(self, store, clock):
        limiter = RateLimiter(store, "search", limit=1, window_seconds=900, clock=clock)
        limiter.check("c")
        clock.advance(300)
        assert limiter.check("c").retry_after == 600

    def test_identities_counted_separately(self, store, clock):
        limiter = RateLimiter(store, "search", limit=1, window_seconds=900, clock=clock)
        assert limiter.check("a").allowed
        assert limiter.check("b").allowed

    def test_limiters_do_not_share_counters(self, store, clock):
        """api와 search 카운터는 독립"""
        search = RateLimiter(store, "search", limit=1, window_seconds=900, clock=clock)
        api = RateLimiter(store, "api", limit=1, window_seconds=900, clock=clock)
        assert search.check("c").allowed
        assert api.check("c").allowed
        assert search.key_for("c") == "rate_limit:search:c:900"
        assert api.key_for("c") == "rate_limit:api:c:900"

    def test_falls_back_to_local_counter(self, clock):
        broken = MagicMock()
        broken.incr_window.side_effect = StoreConnectionException("ConnectionError")
        limiter = RateLimiter(broken, "search", limit=2, window_seconds=900, clock=clock)
        assert limiter.check("c").allowed
        assert limiter.check("c").allowed
        assert not limiter.check("c").allowed

    def test_reset(self, store, clock):
        limiter = RateLimiter(store, "api", limit=1, window_seconds=900, clock=clock)
        limiter.check("c")
        assert not limiter.check("c").allowed
        assert limiter.reset("c") is True
        assert limiter.check("c").allowed

    def test_invalid_configuration(self, store):
        with pytest.raises(ValueError):
            RateLimiter(store, "api", limit=0, window_seconds=900)


class TestRateLimitResponse:
    def test_headers(self, store, clock):
        limiter = RateLimiter(store, "api", limit=300, window_seconds=900, clock=clock)
        headers = rate_limit_headers(limiter.check("c"))
        assert headers["X-RateLimit-Limit"] == "300"
        assert headers["X-RateLimit-Remaining"] == "299"
        assert headers["X-RateLimit-Reset"].endswith("+00:00")

    def test_429_body(self, store, clock):
        limiter = RateLimiter(store, "search", limit=1, window_seconds=900, clock=clock)
        limiter.check("c")
        response = rate_limit_response(limiter.check("c"))
        body = json.loads(response.body)
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "900"
        assert body == {
            "error": "Rate limit exceeded",
            "message": "Too many requests. Try again in 900 seconds.",
            "retryAfter": 900,
        }
