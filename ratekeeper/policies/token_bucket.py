"""Token bucket policy.

Tokens refill continuously at capacity / window_seconds up to the burst
capacity; each request takes one token. A bucket that was never seen (or
expired) is full.
"""

import math
from typing import Tuple

from ratekeeper.policies.keys import state_key
from ratekeeper.policies.models import Decision, LimitSpec
from ratekeeper.stores.base import CounterStore, FloatState

KEY_TAG = "tb"


def take_token(spec: LimitSpec, state: FloatState, now: float) -> Tuple[FloatState, Decision]:
    """Refill the bucket up to `now` and try to take one token.

    A `now` earlier than the last refill (clock skew between callers)
    refills nothing and does not move the refill time backwards.
    """
    burst = float(spec.bucket_size)
    at = max(now, state.timestamp)
    elapsed = at - state.timestamp
    tokens = min(burst, state.value + spec.units_in(elapsed))

    allowed = tokens >= 1.0
    if allowed:
        tokens -= 1.0

    decision = Decision(
        allowed=allowed,
        limit=spec.bucket_size,
        remaining=max(0, math.floor(tokens)),
        reset_at=at + spec.seconds_for(burst - tokens),
        retry_after=None if allowed else spec.seconds_for(1.0 - tokens),
    )
    return FloatState(value=tokens, timestamp=at), decision


async def decide_token_bucket(
    store: CounterStore,
    identity: str,
    spec: LimitSpec,
    now: float,
) -> Decision:
    """Run take_token atomically against the stored bucket."""
    # Once a bucket has had time to refill completely it equals the default
    ttl = spec.seconds_for(spec.bucket_size) + spec.window_seconds
    return await store.update_float_state(
        state_key(identity, KEY_TAG),
        FloatState(value=float(spec.bucket_size), timestamp=now),
        lambda state, at: take_token(spec, state, at),
        ttl,
        now,
    )
