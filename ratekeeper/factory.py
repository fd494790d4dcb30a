"""Build stores and limiters from Settings.

Selects the Redis backend when ``rate_limit_store_backend`` is "remote",
otherwise the in-memory backend.
"""

from typing import Optional

from ratekeeper.core.clock import Clock
from ratekeeper.core.config import Settings, settings as default_settings
from ratekeeper.core.logging import get_logger
from ratekeeper.limiter import LimitResolver, RateLimiter
from ratekeeper.stores.base import CounterStore
from ratekeeper.stores.local import LocalStore
from ratekeeper.stores.remote import RemoteStore

logger = get_logger(__name__)


def create_store(
    config: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> CounterStore:
    """Create the counter store selected by configuration."""
    config = config or default_settings

    if config.rate_limit_store_backend == "remote":
        logger.info("Using Redis rate limit store")
        return RemoteStore(
            redis_url=config.redis_url,
            call_timeout=config.rate_limit_call_timeout,
            max_cas_attempts=config.rate_limit_max_cas_attempts,
            max_key_length=config.rate_limit_max_key_length,
        )

    logger.debug("Using in-memory rate limit store")
    return LocalStore(
        clock=clock,
        max_entries=config.local_store_max_entries,
        sweep_interval=config.local_store_sweep_interval,
        lock_stripes=config.local_store_lock_stripes,
        max_key_length=config.rate_limit_max_key_length,
    )


def create_rate_limiter(
    config: Optional[Settings] = None,
    *,
    store: Optional[CounterStore] = None,
    limit_resolver: Optional[LimitResolver] = None,
    clock: Optional[Clock] = None,
) -> RateLimiter:
    """Create a RateLimiter wired from configuration.

    Args:
        config: Settings to use (defaults to the global settings)
        store: Existing store to share between limiters
        limit_resolver: Optional per-identity limit override
        clock: Time source for both the limiter and a new local store

    Raises:
        InvalidConfigurationError: If the configured limit is unusable
    """
    config = config or default_settings
    limit = config.limit_spec()
    return RateLimiter(
        store or create_store(config, clock=clock),
        limit,
        degraded_mode=config.rate_limit_degraded_mode,
        namespace=config.rate_limit_namespace,
        limit_resolver=limit_resolver,
        clock=clock,
        reject_anonymous=config.rate_limit_reject_anonymous,
    )
