"""Rate limiter facade.

Binds a counter store, a default limit and a degraded mode policy into a
single ``decide(identity)`` operation for the request handling layer.
"""

import hashlib
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from ratekeeper.core.clock import Clock, SystemClock
from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.exceptions import (
    IdentityRejectedError,
    InvalidConfigurationError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from ratekeeper.policies import get_policy
from ratekeeper.policies.models import Decision, LimitSpec
from ratekeeper.stores.base import CounterStore

logger = get_logger(__name__)

Identity = Union[str, bytes, None]
LimitResolver = Callable[[str], Optional[LimitSpec]]

# Key layout: <namespace>[.<tier>]<sep><identity>, where sep is ":" for
# caller identities and "!" for the anonymous pool
KEY_SEPARATORS = (":", ".", "!")
ANONYMOUS_SEPARATOR = "!"


class DegradedMode(str, Enum):
    """Answer given when the counter store is unavailable."""
    FAIL_OPEN = "fail_open"      # Allow: protects availability
    FAIL_CLOSED = "fail_closed"  # Deny: protects the backend


class RateLimiter:
    """Per-identity rate limiting against a shared counter store.

    The limiter holds no per-identity state: every decide() call reads and
    updates the store, so limits hold across every process sharing it.
    Several limiters may share one store as long as their namespaces differ.

    Example:
        >>> limiter = RateLimiter(
        ...     LocalStore(),
        ...     LimitSpec(capacity=100, window_seconds=60),
        ...     degraded_mode=DegradedMode.FAIL_OPEN,
        ... )
        >>> decision = await limiter.decide("api-key-123")
    """

    def __init__(
        self,
        store: CounterStore,
        limit: LimitSpec,
        *,
        degraded_mode: Union[DegradedMode, str],
        namespace: str = "ratelimit",
        limit_resolver: Optional[LimitResolver] = None,
        clock: Optional[Clock] = None,
        anonymous_identity: str = "anonymous",
        reject_anonymous: bool = False,
    ):
        """Initialize the rate limiter.

        Args:
            store: Counter store owning all per-identity state
            limit: Default limit applied to every identity
            degraded_mode: What to answer when the store is unavailable
            namespace: Key prefix separating this limiter from others
            limit_resolver: Optional identity -> LimitSpec override
                (e.g. premium tiers); returning None keeps the default
            clock: Time source when decide() is called without `now`
            anonymous_identity: Label of the pool shared by requests without
                identity; kept apart from any caller identity of that name
            reject_anonymous: Raise IdentityRejectedError instead of
                pooling requests without identity

        Raises:
            InvalidConfigurationError: If limit, namespace or degraded mode
                are unusable
        """
        if not isinstance(limit, LimitSpec):
            raise InvalidConfigurationError(f"limit must be a LimitSpec, got {type(limit).__name__}")
        if not isinstance(store, CounterStore):
            raise InvalidConfigurationError(f"store must be a CounterStore, got {type(store).__name__}")
        try:
            self.degraded_mode = DegradedMode(degraded_mode)
        except ValueError:
            raise InvalidConfigurationError(f"Unknown degraded mode: {degraded_mode!r}") from None
        if not namespace or any(sep in namespace for sep in KEY_SEPARATORS):
            raise InvalidConfigurationError(
                f"namespace must be non-empty and contain none of {KEY_SEPARATORS!r}, got {namespace!r}"
            )
        if not reject_anonymous and not anonymous_identity:
            raise InvalidConfigurationError("anonymous_identity must be non-empty")

        self.store = store
        self.limit = limit
        self.namespace = namespace
        self._limit_resolver = limit_resolver
        self._clock = clock or SystemClock()
        self._anonymous_identity = anonymous_identity
        self._reject_anonymous = reject_anonymous

    def _normalize_identity(self, identity: Identity) -> Tuple[str, bool]:
        """Return (identity, is_anonymous)."""
        if isinstance(identity, bytes):
            identity = identity.decode("utf-8", "backslashreplace")
        if identity is None or identity == "":
            if self._reject_anonymous:
                raise IdentityRejectedError()
            return self._anonymous_identity, True
        return identity, False

    def resolve_limit(self, identity: str) -> LimitSpec:
        """Return the limit that applies to an identity."""
        if self._limit_resolver is None:
            return self.limit
        override = self._limit_resolver(identity)
        if override is None:
            return self.limit
        if not isinstance(override, LimitSpec):
            raise InvalidConfigurationError(
                f"limit_resolver returned {type(override).__name__}, expected LimitSpec"
            )
        return override

    def _key_prefix(self, identity: str, spec: LimitSpec, anonymous: bool = False) -> str:
        space = self.namespace
        if spec != self.limit:
            # Overrides get their own key space so tiers never share counters
            space = f"{space}.{hashlib.sha256(spec.tag.encode()).hexdigest()[:8]}"
        separator = ANONYMOUS_SEPARATOR if anonymous else ":"
        return f"{space}{separator}{identity}"

    def _degraded_decision(self, spec: LimitSpec, now: float) -> Decision:
        limit = spec.bucket_size if spec.algorithm.uses_buckets else spec.capacity
        if self.degraded_mode is DegradedMode.FAIL_CLOSED:
            return Decision(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_at=now + spec.window_seconds,
                retry_after=spec.window_seconds,
                degraded=True,
            )
        return Decision(
            allowed=True,
            limit=limit,
            remaining=0,
            reset_at=now + spec.window_seconds,
            degraded=True,
        )

    async def decide(self, identity: Identity, now: Optional[float] = None) -> Decision:
        """Decide whether a request from `identity` may proceed.

        Args:
            identity: Client identity (None or empty uses the anonymous pool)
            now: Request timestamp in epoch seconds (defaults to the clock)

        Returns:
            Decision with allowed status and header metadata

        Raises:
            IdentityRejectedError: Empty identity while anonymous is rejected
            InvalidKeyError: Identity fails store key constraints
        """
        name, anonymous = self._normalize_identity(identity)
        spec = self.resolve_limit(name)
        if now is None:
            now = self._clock.now()

        key = self._key_prefix(name, spec, anonymous)
        policy = get_policy(spec.algorithm)
        try:
            return await policy(self.store, key, spec, now)
        except StoreUnavailableError as e:
            logger.warning(
                f"Rate limiting {self.degraded_mode.value} triggered due to {e.reason}: {e.message}",
                extra=get_log_context(
                    identity=key,
                    namespace=self.namespace,
                    algorithm=spec.algorithm.value,
                    store=self.store.name,
                    degraded_mode=self.degraded_mode.value,
                    reason=e.reason,
                ),
            )
            return self._degraded_decision(spec, now)

    async def enforce(self, identity: Identity, now: Optional[float] = None) -> Decision:
        """Like decide(), but raise RateLimitExceededError when denied."""
        decision = await self.decide(identity, now)
        if not decision.allowed:
            raise RateLimitExceededError(decision)
        return decision

    async def close(self) -> None:
        """Close the underlying store."""
        await self.store.close()
