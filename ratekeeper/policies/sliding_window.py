"""Sliding window counter policy.

Approximates a true sliding log with two fixed window counters: the
previous window's count is weighted by how much of it still overlaps the
sliding interval.

    estimate = current + previous * (1 - elapsed_fraction)

Every attempt is counted, rejected ones included, so a client hammering
the limit cannot probe for free.
"""

import asyncio
import math

from ratekeeper.policies.keys import counter_key, window_bounds
from ratekeeper.policies.models import Decision, LimitSpec
from ratekeeper.stores.base import CounterStore

KEY_TAG = "sw"


def sliding_estimate(current: int, previous: int, elapsed_fraction: float) -> float:
    """Weighted request count over the sliding interval."""
    elapsed_fraction = min(1.0, max(0.0, elapsed_fraction))
    return current + previous * (1.0 - elapsed_fraction)


def _retry_after(current: int, previous: int, spec: LimitSpec, window_start: float, now: float) -> float:
    """Seconds until one more attempt would fit under the estimate."""
    capacity = spec.capacity
    window = spec.window_seconds

    if current + 1 <= capacity and previous > 0:
        # Fits later in this window once the previous window decays enough
        fraction = 1.0 - (capacity - current - 1) / previous
        return max(0.0, window_start + fraction * window - now)

    # Has to wait for the next window, where this window becomes "previous"
    fraction = 0.0 if current == 0 else max(0.0, 1.0 - (capacity - 1) / current)
    return max(0.0, window_start + window + fraction * window - now)


async def decide_sliding_window(
    store: CounterStore,
    identity: str,
    spec: LimitSpec,
    now: float,
) -> Decision:
    """Count this attempt and weigh it against the previous window."""
    window = spec.window_seconds
    window_id, window_start = window_bounds(now, window)
    elapsed_fraction = (now - window_start) / window

    # Counters live for two windows so they can be read back as "previous"
    current, previous = await asyncio.gather(
        store.incr_with_expiry(counter_key(identity, KEY_TAG, window_id), 2 * window),
        store.get_count(counter_key(identity, KEY_TAG, window_id - 1)),
    )

    estimate = sliding_estimate(current, previous, elapsed_fraction)
    allowed = estimate <= spec.capacity

    return Decision(
        allowed=allowed,
        limit=spec.capacity,
        remaining=max(0, math.floor(spec.capacity - estimate)),
        reset_at=window_start + window,
        retry_after=None if allowed else _retry_after(current, previous, spec, window_start, now),
    )
