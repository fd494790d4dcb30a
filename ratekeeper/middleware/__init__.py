"""Middleware package for HTTP frameworks."""

from ratekeeper.middleware.rate_limit import RateLimitMiddleware, resolve_client_identity

__all__ = [
    "RateLimitMiddleware",
    "resolve_client_identity",
]
