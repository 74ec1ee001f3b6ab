"""Unit tests for the fixed-window rate limiter."""

import threading

import pytest

from claim_validation.config.settings import RateLimitConfig
from claim_validation.exceptions import RateLimitExceededError
from claim_validation.security.rate_limiter import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(RateLimitConfig(max_requests=3, window_seconds=60), clock=clock)


class TestFixedWindow:
    """Quota per caller per window."""

    def test_allows_up_to_quota(self, limiter):
        assert [limiter.try_acquire("alice")[0] for _ in range(4)] == [True, True, True, False]

    def test_retry_after_counts_down(self, limiter, clock):
        for _ in range(3):
            limiter.try_acquire("alice")
        clock.now += 15
        allowed, retry_after = limiter.try_acquire("alice")
        assert allowed is False
        assert retry_after == pytest.approx(45.0)

    def test_window_resets(self, limiter, clock):
        for _ in range(3):
            limiter.try_acquire("alice")
        clock.now += 60
        assert limiter.try_acquire("alice") == (True, 0.0)
        assert limiter.remaining("alice") == 2

    def test_callers_are_independent(self, limiter):
        for _ in range(3):
            limiter.try_acquire("alice")
        assert limiter.try_acquire("bob") == (True, 0.0)
        assert limiter.remaining("alice") == 0
        assert limiter.remaining("carol") == 3

    def test_check_raises_with_response(self, limiter):
        for _ in range(3):
            limiter.check("alice")
        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.check("alice")
        response = exc_info.value.to_response()
        assert response["status"] == "Rejected"
        assert response["code"] == "RATE_LIMIT_EXCEEDED"
        assert response["retry_after_seconds"] == 60.0
        assert "3 requests per 60s" in response["message"]

    def test_reset(self, limiter):
        for _ in range(3):
            limiter.try_acquire("alice")
        limiter.reset()
        assert limiter.remaining("alice") == 3

    def test_expired_windows_dropped(self, limiter, clock):
        for caller in ("alice", "bob", "carol"):
            limiter.try_acquire(caller)
        assert limiter.tracked_callers == 3

        clock.now += 61
        limiter.try_acquire("dave")
        assert limiter.tracked_callers == 1

    def test_active_windows_kept(self, limiter, clock):
        limiter.try_acquire("alice")
        clock.now += 30
        limiter.try_acquire("bob")
        clock.now += 31
        limiter.try_acquire("carol")
        assert limiter.tracked_callers == 2
        assert limiter.remaining("bob") == 2


class TestConcurrency:
    """Concurrent callers never exceed the quota."""

    def test_parallel_acquire(self):
        limiter = FixedWindowRateLimiter(RateLimitConfig(max_requests=50, window_seconds=3600))
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                allowed, _ = limiter.try_acquire("shared")
                with lock:
                    results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 160
        assert sum(results) == 50
