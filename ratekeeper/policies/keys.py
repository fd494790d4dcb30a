"""Store key construction shared by the policies."""

import math
from typing import Tuple


def window_bounds(now: float, window_seconds: float) -> Tuple[int, float]:
    """Return (window id, window start) for the window containing `now`."""
    window_id = math.floor(now / window_seconds)
    return window_id, window_id * window_seconds


def counter_key(identity: str, policy: str, window_id: int) -> str:
    """Key of a per-window counter, e.g. ``ratelimit:alice:fw:28333``."""
    return f"{identity}:{policy}:{window_id}"


def state_key(identity: str, policy: str) -> str:
    """Key of a per-identity float state, e.g. ``ratelimit:alice:tb``."""
    return f"{identity}:{policy}"
