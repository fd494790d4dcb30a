"""Rate limiting policies.

Each policy is a stateless coroutine
``(store, identity, spec, now) -> Decision``; all per-identity state lives
in the counter store.
"""

from typing import Awaitable, Callable, Dict

from ratekeeper.policies.fixed_window import decide_fixed_window
from ratekeeper.policies.leaky_bucket import decide_leaky_bucket
from ratekeeper.policies.models import Algorithm, Decision, LimitSpec
from ratekeeper.policies.sliding_window import decide_sliding_window, sliding_estimate
from ratekeeper.policies.token_bucket import decide_token_bucket
from ratekeeper.stores.base import CounterStore

Policy = Callable[[CounterStore, str, LimitSpec, float], Awaitable[Decision]]

POLICIES: Dict[Algorithm, Policy] = {
    Algorithm.FIXED_WINDOW: decide_fixed_window,
    Algorithm.SLIDING_WINDOW: decide_sliding_window,
    Algorithm.TOKEN_BUCKET: decide_token_bucket,
    Algorithm.LEAKY_BUCKET: decide_leaky_bucket,
}


def get_policy(algorithm: Algorithm) -> Policy:
    """Return the policy coroutine for an algorithm."""
    return POLICIES[Algorithm(algorithm)]


__all__ = [
    "Algorithm",
    "Decision",
    "LimitSpec",
    "Policy",
    "POLICIES",
    "get_policy",
    "decide_fixed_window",
    "decide_sliding_window",
    "decide_token_bucket",
    "decide_leaky_bucket",
    "sliding_estimate",
]
