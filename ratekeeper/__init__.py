"""Rate limiting decision engine with pluggable counter stores."""

from ratekeeper.core.clock import Clock, ManualClock, SystemClock
from ratekeeper.exceptions import (
    IdentityRejectedError,
    InvalidConfigurationError,
    InvalidKeyError,
    KeyTooLargeError,
    RateLimiterError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from ratekeeper.factory import create_rate_limiter, create_store
from ratekeeper.limiter import DegradedMode, RateLimiter
from ratekeeper.policies.models import Algorithm, Decision, LimitSpec
from ratekeeper.stores import CounterStore, FloatState, LocalStore, RemoteStore

__version__ = "0.1.0"

__all__ = [
    # Time
    "Clock",
    "ManualClock",
    "SystemClock",
    # Models
    "Algorithm",
    "Decision",
    "LimitSpec",
    # Stores
    "CounterStore",
    "FloatState",
    "LocalStore",
    "RemoteStore",
    # Facade
    "DegradedMode",
    "RateLimiter",
    "create_rate_limiter",
    "create_store",
    # Errors
    "RateLimiterError",
    "StoreUnavailableError",
    "InvalidKeyError",
    "KeyTooLargeError",
    "InvalidConfigurationError",
    "IdentityRejectedError",
    "RateLimitExceededError",
]
