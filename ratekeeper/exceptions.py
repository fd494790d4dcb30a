"""Custom exceptions for the rate limiter."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ratekeeper.policies.models import Decision


class RateLimiterError(Exception):
    """Base class for rate limiter exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    specific status_code so an HTTP adapter can render them consistently.
    """
    status_code: int = 500

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class StoreUnavailableError(RateLimiterError):
    """Raised when the counter store cannot be reached in time.

    Covers connection failures, timeouts and exhausted compare-and-set
    retries. The facade turns this into a degraded decision.
    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503

    def __init__(self, detail: str = "Counter store unavailable", *, reason: str = "unavailable"):
        self.reason = reason
        super().__init__(detail)


class InvalidKeyError(RateLimiterError):
    """Raised when an identity key fails store constraints.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, detail: str = "Invalid rate limit key"):
        super().__init__(detail)


class KeyTooLargeError(InvalidKeyError):
    """Raised when a key exceeds the configured maximum length."""

    def __init__(self, length: int, max_length: int):
        self.length = length
        self.max_length = max_length
        super().__init__(f"Rate limit key too long ({length} bytes, max {max_length})")


class InvalidConfigurationError(RateLimiterError):
    """Raised at construction time for an unusable limit configuration."""
    status_code = 500


class IdentityRejectedError(RateLimiterError):
    """Raised when an empty identity arrives and anonymous traffic is rejected.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, detail: str = "Client identity required"):
        super().__init__(detail)


class RateLimitExceededError(RateLimiterError):
    """Raised by RateLimiter.enforce() when a request is denied.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, decision: "Decision", detail: str | None = None):
        self.decision = decision
        message = detail or "Rate limit exceeded."
        if decision.retry_after is not None:
            message += f" Retry after {decision.retry_after:.3f}s."
        super().__init__(message)
