# ==============================================================================
# RATE LIMITER TESTS
# ==============================================================================

import pytest

from farm_data.core.exceptions import DatabaseErrorCode, RateLimitExceededError
from farm_data.database.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_000.0)


@pytest.fixture
def limiter(clock: FakeClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        max_requests=3,
        window_ms=1_000,
        cleanup_probability=0.0,
        clock=clock,
    )


class TestSlidingWindowRateLimiter:
    """Tests for the per-actor sliding window."""

    def test_allows_up_to_limit(self, limiter):
        for _ in range(3):
            limiter.check("user-1")
        assert limiter.request_count("user-1") == 3

    def test_rejects_over_limit_without_recording(self, limiter, clock):
        for _ in range(3):
            limiter.check("user-1")
        clock.now += 250

        with pytest.raises(RateLimitExceededError) as exc:
            limiter.check("user-1")

        error = exc.value
        assert error.code is DatabaseErrorCode.RATE_LIMIT_EXCEEDED
        assert error.status_code == 429
        assert error.details["request_count"] == 3
        assert error.details["limit"] == 3
        assert error.retry_after_ms == 750
        assert limiter.request_count("user-1") == 3

    def test_window_slides(self, limiter, clock):
        for _ in range(3):
            limiter.check("user-1")
        clock.now += 1_000
        limiter.check("user-1")
        assert limiter.request_count("user-1") == 1

    def test_actors_are_independent(self, limiter):
        for _ in range(3):
            limiter.check("user-1")
        limiter.check("user-2")
        assert limiter.request_count("user-2") == 1

    def test_missing_actor_is_not_limited(self, limiter):
        for _ in range(10):
            limiter.check(None)
            limiter.check("")
        assert limiter.tracked_actors == 0

    def test_sweep_removes_idle_actors(self, limiter, clock):
        limiter.check("idle")
        clock.now += 500
        limiter.check("active")
        clock.now += 600

        removed = limiter.sweep()

        assert removed == 1
        assert limiter.tracked_actors == 1
        assert limiter.request_count("active") == 1

    def test_probabilistic_cleanup(self, clock):
        limiter = SlidingWindowRateLimiter(
            max_requests=5,
            window_ms=100,
            cleanup_probability=0.5,
            clock=clock,
            rand=lambda: 0.1,
        )
        limiter.check("old")
        clock.now += 200
        limiter.check("new")
        assert limiter.tracked_actors == 1

    def test_reset(self, limiter):
        limiter.check("user-1")
        limiter.reset()
        assert limiter.tracked_actors == 0
