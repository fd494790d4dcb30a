"""Redis-backed counter store for multi-instance deployments.

Counters use a Lua script that increments and applies the TTL in one
atomic step. Float state (token and leaky buckets) uses an optimistic
compare-and-set loop over a versioned hash with a bounded number of
attempts.

Redis key format:
- <namespace>:<identity>:<policy>:<window> - counters (string)
- <namespace>:<identity>:<policy> - float state (hash with v, a, b)
"""

import asyncio
import math
from typing import Any, Awaitable, Optional, Tuple

import redis
import redis.asyncio as aioredis

from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.exceptions import StoreUnavailableError
from ratekeeper.stores.base import (
    DEFAULT_MAX_KEY_LENGTH,
    CounterStore,
    FloatState,
    T,
    UpdateFn,
    validate_key,
)
from ratekeeper.stores.redis_lua import CAS_UPDATE_SCRIPT, INCR_WITH_EXPIRY_SCRIPT

logger = get_logger(__name__)


def _ttl_ms(ttl: float) -> int:
    return max(1, math.ceil(ttl * 1000))


class RemoteStore(CounterStore):
    """Counter store shared across processes through Redis.

    Every Redis call is bounded by call_timeout. Timeouts, connection
    failures and other Redis errors surface as StoreUnavailableError so
    the facade can apply its degraded mode policy.
    """

    name = "remote"

    DEFAULT_CALL_TIMEOUT = 0.05
    DEFAULT_MAX_CAS_ATTEMPTS = 5

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        max_cas_attempts: int = DEFAULT_MAX_CAS_ATTEMPTS,
        max_key_length: int = DEFAULT_MAX_KEY_LENGTH,
    ) -> None:
        """Initialize the remote store.

        Args:
            redis_client: Optional Redis client instance
            redis_url: Redis connection URL, used when no client is given
            call_timeout: Seconds allowed per Redis round trip
            max_cas_attempts: Compare-and-set attempts before giving up
            max_key_length: Maximum UTF-8 key length in bytes
        """
        if redis_client is None and redis_url is None:
            raise ValueError("RemoteStore needs a redis_client or a redis_url")
        self._redis = redis_client
        self._redis_url = redis_url
        self._owns_client = redis_client is None
        self._call_timeout = call_timeout
        self._max_cas_attempts = max_cas_attempts
        self._max_key_length = max_key_length

    def _get_redis(self) -> Any:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                socket_timeout=self._call_timeout,
                socket_connect_timeout=self._call_timeout,
            )
        return self._redis

    def _unavailable(self, operation: str, reason: str, error: BaseException) -> StoreUnavailableError:
        logger.warning(
            f"Redis {operation} failed ({reason}): {error!r}",
            extra=get_log_context(store=self.name, reason=reason),
        )
        return StoreUnavailableError(f"Redis {operation} failed: {error!r}", reason=reason)

    async def _call(self, awaitable: Awaitable[Any], operation: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._call_timeout)
        except (asyncio.TimeoutError, redis.TimeoutError) as e:
            # Redis slow or overloaded
            raise self._unavailable(operation, "timeout", e) from e
        except redis.ConnectionError as e:
            raise self._unavailable(operation, "connection_error", e) from e
        except redis.RedisError as e:
            raise self._unavailable(operation, "redis_error", e) from e
        except OSError as e:
            raise self._unavailable(operation, "connection_error", e) from e

    async def incr_with_expiry(self, key: str, ttl: float) -> int:
        validate_key(key, self._max_key_length)
        client = self._get_redis()
        result = await self._call(
            client.eval(INCR_WITH_EXPIRY_SCRIPT, 1, key, _ttl_ms(ttl)),
            "incr_with_expiry",
        )
        value, created = int(result[0]), bool(int(result[1]))
        if created:
            logger.debug(f"Created counter {key} with ttl {ttl}s")
        return value

    async def get_count(self, key: str) -> int:
        validate_key(key, self._max_key_length)
        client = self._get_redis()
        raw = await self._call(client.get(key), "get_count")
        return int(raw) if raw is not None else 0

    @staticmethod
    def _parse_state(raw: Any, default: FloatState) -> Tuple[int, FloatState]:
        """Decode an HMGET [v, a, b] reply into (version, state)."""
        version_raw, value_raw, timestamp_raw = raw
        version = int(version_raw) if version_raw is not None else 0
        if value_raw is None or timestamp_raw is None:
            return version, default
        return version, FloatState(value=float(value_raw), timestamp=float(timestamp_raw))

    async def update_float_state(
        self,
        key: str,
        default: FloatState,
        update_fn: UpdateFn,
        ttl: float,
        now: float,
    ) -> T:
        validate_key(key, self._max_key_length)
        client = self._get_redis()
        ttl_ms = _ttl_ms(ttl)

        for attempt in range(self._max_cas_attempts):
            raw = await self._call(client.hmget(key, "v", "a", "b"), "read_state")
            version, state = self._parse_state(raw, default)
            new_state, result = update_fn(state, now)
            written = await self._call(
                client.eval(
                    CAS_UPDATE_SCRIPT,
                    1,
                    key,
                    str(version),
                    str(version + 1),
                    repr(float(new_state.value)),
                    repr(float(new_state.timestamp)),
                    ttl_ms,
                ),
                "cas_update",
            )
            if int(written) == 1:
                return result
            logger.debug(f"CAS conflict on {key} (attempt {attempt + 1}/{self._max_cas_attempts})")

        logger.warning(
            f"CAS retries exhausted for {key} after {self._max_cas_attempts} attempts",
            extra=get_log_context(identity=key, store=self.name, reason="cas_conflict"),
        )
        raise StoreUnavailableError(
            f"State update for {key} kept conflicting after {self._max_cas_attempts} attempts",
            reason="cas_conflict",
        )

    async def close(self) -> None:
        """Close the Redis connection if this store created it."""
        if self._redis is not None and self._owns_client:
            try:
                await self._redis.aclose()
            except (redis.RedisError, OSError) as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._redis = None
