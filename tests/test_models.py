"""Tests for LimitSpec, Decision and the clocks."""

import pytest

from ratekeeper.core.clock import ManualClock, SystemClock
from ratekeeper.exceptions import InvalidConfigurationError
from ratekeeper.policies.models import Algorithm, Decision, LimitSpec


class TestLimitSpec:
    """Tests for limit validation."""

    def test_defaults_to_fixed_window(self):
        spec = LimitSpec(capacity=10, window_seconds=60)
        assert spec.algorithm is Algorithm.FIXED_WINDOW
        assert spec.bucket_size == 10

    def test_algorithm_string_is_coerced(self):
        spec = LimitSpec(capacity=10, window_seconds=60, algorithm="token_bucket", burst_capacity=5)
        assert spec.algorithm is Algorithm.TOKEN_BUCKET
        assert spec.bucket_size == 5

    @pytest.mark.parametrize("capacity", [0, -1, 1.5, True, "10"])
    def test_rejects_bad_capacity(self, capacity):
        with pytest.raises(InvalidConfigurationError):
            LimitSpec(capacity=capacity, window_seconds=60)

    @pytest.mark.parametrize("window", [0, -5, float("inf"), float("nan")])
    def test_rejects_bad_window(self, window):
        with pytest.raises(InvalidConfigurationError):
            LimitSpec(capacity=10, window_seconds=window)

    @pytest.mark.parametrize("algorithm", [Algorithm.TOKEN_BUCKET, Algorithm.LEAKY_BUCKET])
    def test_bucket_algorithms_require_burst_capacity(self, algorithm):
        with pytest.raises(InvalidConfigurationError, match="burst_capacity"):
            LimitSpec(capacity=10, window_seconds=60, algorithm=algorithm)

    def test_rejects_non_positive_burst(self):
        with pytest.raises(InvalidConfigurationError):
            LimitSpec(capacity=10, window_seconds=60, algorithm="leaky_bucket", burst_capacity=0)

    def test_rejects_unknown_algorithm(self):
        with pytest.raises(InvalidConfigurationError, match="Unknown algorithm"):
            LimitSpec(capacity=10, window_seconds=60, algorithm="random_drop")

    def test_rate_arithmetic_is_exact(self):
        spec = LimitSpec(capacity=10, window_seconds=60, algorithm="token_bucket", burst_capacity=10)
        assert spec.units_in(6) == 1.0
        assert spec.seconds_for(1) == 6.0
        assert spec.units_in(60) == 10.0

    def test_is_immutable(self):
        spec = LimitSpec(capacity=10, window_seconds=60)
        with pytest.raises(AttributeError):
            spec.capacity = 20

    def test_tag_distinguishes_limits(self):
        a = LimitSpec(capacity=10, window_seconds=60)
        b = LimitSpec(capacity=100, window_seconds=60)
        assert a.tag != b.tag


class TestDecision:
    """Tests for Decision header rendering."""

    def test_allowed_headers(self):
        decision = Decision(allowed=True, limit=10, remaining=7, reset_at=120.0)
        assert decision.headers() == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "7",
            "X-RateLimit-Reset": "120",
        }

    def test_denied_headers_round_retry_after_up(self):
        decision = Decision(allowed=False, limit=10, remaining=0, reset_at=120.2, retry_after=2.1)
        headers = decision.headers()
        assert headers["Retry-After"] == "3"
        assert headers["X-RateLimit-Reset"] == "121"

    def test_denied_headers_never_say_zero(self):
        decision = Decision(allowed=False, limit=10, remaining=0, reset_at=60.0, retry_after=0.0)
        assert decision.headers()["Retry-After"] == "1"


class TestClocks:
    """Tests for time sources."""

    def test_manual_clock_moves_only_when_told(self):
        clock = ManualClock(100.0)
        assert clock.now() == 100.0
        assert clock.advance(2.5) == 102.5
        clock.set(10)
        assert clock.now() == 10.0

    def test_system_clock_returns_epoch_seconds(self):
        assert SystemClock().now() > 1_600_000_000
