"""Counter store interfaces.

Policies depend on this abstraction (not the concrete implementation) so
the same decision logic runs against the in-process store or a shared
Redis instance.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Tuple, TypeVar

from ratekeeper.exceptions import InvalidKeyError, KeyTooLargeError

T = TypeVar("T")

DEFAULT_MAX_KEY_LENGTH = 1024


@dataclass(frozen=True)
class FloatState:
    """Float pair persisted by the bucket algorithms.

    Attributes:
        value: Tokens (token bucket) or queue level (leaky bucket)
        timestamp: Last refill or drain time in epoch seconds
    """
    value: float
    timestamp: float


UpdateFn = Callable[[FloatState, float], Tuple[FloatState, T]]


def validate_key(key: str, max_length: int = DEFAULT_MAX_KEY_LENGTH) -> str:
    """Check a store key against backend constraints.

    Raises:
        InvalidKeyError: If the key is empty or not a string
        KeyTooLargeError: If the UTF-8 encoded key exceeds max_length
    """
    if not isinstance(key, str) or not key:
        raise InvalidKeyError("Rate limit key must be a non-empty string")
    length = len(key.encode("utf-8", "surrogateescape"))
    if length > max_length:
        raise KeyTooLargeError(length, max_length)
    return key


class CounterStore(ABC):
    """Abstract base class for counter stores.

    Every primitive is atomic with respect to concurrent callers on the
    same key. Implementations own all per-identity state.
    """

    # Backend label used in log context
    name: str = "store"

    @abstractmethod
    async def incr_with_expiry(self, key: str, ttl: float) -> int:
        """Atomically increment a counter, creating it at 1 if absent.

        The TTL is applied only on the transition from absent to 1.

        Args:
            key: Counter key
            ttl: Lifetime in seconds for a newly created counter

        Returns:
            The post-increment value
        """
        pass

    @abstractmethod
    async def get_count(self, key: str) -> int:
        """Read a counter without modifying it (0 when absent or expired)."""
        pass

    @abstractmethod
    async def update_float_state(
        self,
        key: str,
        default: FloatState,
        update_fn: UpdateFn,
        ttl: float,
        now: float,
    ) -> T:
        """Atomically read, transform and store a FloatState.

        Args:
            key: State key
            default: State used when the key is absent or expired
            update_fn: Pure function (state, now) -> (new_state, result)
            ttl: Lifetime in seconds applied to the stored new_state
            now: Timestamp passed through to update_fn

        Returns:
            The result produced by update_fn
        """
        pass

    async def cleanup(self) -> None:
        """Clean up expired entries."""
        pass

    async def close(self) -> None:
        """Release connections or other resources."""
        pass
