"""Fixed window counter policy.

Each identity gets one counter per window; the counter expires with its
window. A client can spend its full capacity at the end of one window and
again at the start of the next. The sliding window policy exists to
smooth that boundary burst.
"""

from ratekeeper.policies.keys import counter_key, window_bounds
from ratekeeper.policies.models import Decision, LimitSpec
from ratekeeper.stores.base import CounterStore

KEY_TAG = "fw"


async def decide_fixed_window(
    store: CounterStore,
    identity: str,
    spec: LimitSpec,
    now: float,
) -> Decision:
    """Count this request in the current window and compare against capacity."""
    window_id, window_start = window_bounds(now, spec.window_seconds)
    reset_at = window_start + spec.window_seconds

    count = await store.incr_with_expiry(
        counter_key(identity, KEY_TAG, window_id), spec.window_seconds
    )

    allowed = count <= spec.capacity
    return Decision(
        allowed=allowed,
        limit=spec.capacity,
        remaining=max(0, spec.capacity - count),
        reset_at=reset_at,
        retry_after=None if allowed else max(0.0, reset_at - now),
    )
