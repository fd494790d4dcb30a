"""Rate limiting data models.

This module contains the immutable limit configuration and the decision
value returned for every request.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ratekeeper.exceptions import InvalidConfigurationError


class Algorithm(str, Enum):
    """Supported rate limiting algorithms."""
    FIXED_WINDOW = "fixed_window"
    SLIDING_WINDOW = "sliding_window"
    TOKEN_BUCKET = "token_bucket"
    LEAKY_BUCKET = "leaky_bucket"

    @property
    def uses_buckets(self) -> bool:
        return self in (Algorithm.TOKEN_BUCKET, Algorithm.LEAKY_BUCKET)


@dataclass(frozen=True)
class LimitSpec:
    """Immutable limit configuration bound to a RateLimiter.

    Attributes:
        capacity: Requests allowed per window (refill/drain amount per
            window for the bucket algorithms)
        window_seconds: Window duration in seconds
        algorithm: Which policy evaluates requests
        burst_capacity: Bucket size, required for token and leaky bucket
    """
    capacity: int
    window_seconds: float
    algorithm: Algorithm = Algorithm.FIXED_WINDOW
    burst_capacity: Optional[int] = None

    def __post_init__(self) -> None:
        try:
            algorithm = Algorithm(self.algorithm)
        except ValueError:
            raise InvalidConfigurationError(f"Unknown algorithm: {self.algorithm!r}") from None
        object.__setattr__(self, "algorithm", algorithm)

        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int) or self.capacity <= 0:
            raise InvalidConfigurationError(f"capacity must be a positive integer, got {self.capacity!r}")
        if isinstance(self.window_seconds, bool) or not isinstance(self.window_seconds, (int, float)):
            raise InvalidConfigurationError(f"window_seconds must be a number, got {self.window_seconds!r}")
        if not math.isfinite(self.window_seconds) or self.window_seconds <= 0:
            raise InvalidConfigurationError(f"window_seconds must be positive, got {self.window_seconds!r}")

        if algorithm.uses_buckets:
            if self.burst_capacity is None:
                raise InvalidConfigurationError(f"{algorithm.value} requires burst_capacity")
        if self.burst_capacity is not None:
            if (
                isinstance(self.burst_capacity, bool)
                or not isinstance(self.burst_capacity, int)
                or self.burst_capacity <= 0
            ):
                raise InvalidConfigurationError(
                    f"burst_capacity must be a positive integer, got {self.burst_capacity!r}"
                )

    @property
    def rate(self) -> float:
        """Steady-state rate in requests per second."""
        return self.capacity / self.window_seconds

    @property
    def bucket_size(self) -> int:
        """Bucket size for the bucket algorithms, capacity otherwise."""
        return self.burst_capacity if self.burst_capacity is not None else self.capacity

    def seconds_for(self, amount: float) -> float:
        """Time needed to refill or drain `amount` units at the steady rate."""
        return amount * self.window_seconds / self.capacity

    def units_in(self, elapsed: float) -> float:
        """Units refilled or drained over `elapsed` seconds."""
        return elapsed * self.capacity / self.window_seconds

    @property
    def tag(self) -> str:
        """Short stable label used to separate key spaces of different limits."""
        burst = "" if self.burst_capacity is None else f"b{self.burst_capacity}"
        return f"{self.algorithm.value}:{self.capacity}/{self.window_seconds:g}{burst}"


@dataclass(frozen=True)
class Decision:
    """Result of a rate limit decision.

    Attributes:
        allowed: Whether the request may proceed
        limit: Capacity the decision was made against
        remaining: Requests still available (0 when denied)
        reset_at: Epoch seconds when the limit fully resets
        retry_after: Seconds to wait before retrying, set only when denied
        degraded: True when the store was unavailable and the degraded
            mode policy answered instead
    """
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: Optional[float] = None
    degraded: bool = False

    def headers(self) -> Dict[str, str]:
        """Standard rate limit response headers for this decision."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(max(1, math.ceil(self.retry_after or 0)))
        return headers
