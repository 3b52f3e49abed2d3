"""Tests for the sliding-window rate limiter."""

from docrender.api.rate_limit import SlidingWindowRateLimiter
from docrender.utils.config import RateLimitConfig


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    def test_allows_up_to_limit(self) -> None:
        limiter = SlidingWindowRateLimiter(3, 60, clock=FakeClock())
        assert [limiter.is_allowed("1.2.3.4") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self) -> None:
        limiter = SlidingWindowRateLimiter(1, 60, clock=FakeClock())
        assert limiter.is_allowed("a") is True
        assert limiter.is_allowed("b") is True
        assert limiter.is_allowed("a") is False

    def test_window_slides(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(2, 60, clock=clock)
        limiter.is_allowed("a")
        clock.now += 30
        limiter.is_allowed("a")
        assert limiter.is_allowed("a") is False

        clock.now += 31
        assert limiter.is_allowed("a") is True
        assert limiter.is_allowed("a") is False

    def test_retry_after(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 60, clock=clock)
        assert limiter.retry_after("a") == 0
        limiter.is_allowed("a")
        clock.now += 20.5
        assert limiter.retry_after("a") == 40

    def test_retry_after_is_at_least_one(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 60, clock=clock)
        limiter.is_allowed("a")
        clock.now += 59.99
        assert limiter.retry_after("a") == 1

    def test_rejections_are_not_recorded(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 60, clock=clock)
        limiter.is_allowed("a")
        clock.now += 50
        limiter.is_allowed("a")
        clock.now += 11
        assert limiter.is_allowed("a") is True

    def test_zero_disables(self) -> None:
        limiter = SlidingWindowRateLimiter(0, 60, clock=FakeClock())
        assert limiter.enabled is False
        assert all(limiter.is_allowed("a") for _ in range(1000))
        assert len(limiter) == 0

    def test_idle_keys_are_swept(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(5, 60, clock=clock)
        for key in ("a", "b", "c"):
            limiter.is_allowed(key)
        assert len(limiter) == 3

        clock.now += 120
        limiter.is_allowed("d")
        assert len(limiter) == 1

    def test_from_config(self) -> None:
        limiter = SlidingWindowRateLimiter.from_config(RateLimitConfig())
        assert limiter.max_requests == 100
        assert limiter.window_seconds == 900
