"""Leaky bucket policy (as a meter).

The queue level drains continuously at capacity / window_seconds. A
request is admitted when adding it keeps the level within the bucket
size. The bucket size is burst_capacity, not capacity: capacity sets the
drain rate, so the two differ whenever burst_capacity != capacity.
"""

import math
from typing import Tuple

from ratekeeper.policies.keys import state_key
from ratekeeper.policies.models import Decision, LimitSpec
from ratekeeper.stores.base import CounterStore, FloatState

KEY_TAG = "lb"


def add_to_queue(spec: LimitSpec, state: FloatState, now: float) -> Tuple[FloatState, Decision]:
    """Drain the queue up to `now` and try to add one request."""
    size = float(spec.bucket_size)
    at = max(now, state.timestamp)
    elapsed = at - state.timestamp
    level = max(0.0, state.value - spec.units_in(elapsed))

    allowed = level + 1.0 <= size
    if allowed:
        level += 1.0

    decision = Decision(
        allowed=allowed,
        limit=spec.bucket_size,
        remaining=max(0, math.floor(size - level)),
        reset_at=at + spec.seconds_for(level),
        retry_after=None if allowed else spec.seconds_for(level + 1.0 - size),
    )
    return FloatState(value=level, timestamp=at), decision


async def decide_leaky_bucket(
    store: CounterStore,
    identity: str,
    spec: LimitSpec,
    now: float,
) -> Decision:
    """Run add_to_queue atomically against the stored queue level."""
    # A queue that had time to drain completely equals the default
    ttl = spec.seconds_for(spec.bucket_size) + spec.window_seconds
    return await store.update_float_state(
        state_key(identity, KEY_TAG),
        FloatState(value=0.0, timestamp=now),
        lambda state, at: add_to_queue(spec, state, at),
        ttl,
        now,
    )
