"""Rate limiting middleware for Starlette/FastAPI applications.

Resolves a client identity from the request, asks the RateLimiter for a
decision and renders it: 429 with Retry-After when denied, rate limit
headers on every allowed response, and a distinct error status when the
limiter itself fails.
"""

import hashlib
import inspect
from typing import Awaitable, Callable, Optional, Union

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ratekeeper.core.logging import get_logger
from ratekeeper.exceptions import InvalidKeyError, RateLimiterError
from ratekeeper.limiter import RateLimiter

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512

IdentityResolver = Callable[[Request], Union[Optional[str], Awaitable[Optional[str]]]]


def resolve_client_identity(request: Request) -> str:
    """Get the rate limit identity for a request.

    Uses the Bearer API key if present, otherwise the client IP. Both are
    hashed with SHA-256 so raw keys and addresses never reach the store.

    Args:
        request: Incoming request

    Returns:
        Identity string (hashed, no sensitive data exposed)

    Raises:
        InvalidKeyError: If the API key is longer than 512 characters
    """
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        api_key = auth[7:].strip()
        if len(api_key) > MAX_API_KEY_LENGTH:
            raise InvalidKeyError(f"API key too long (max {MAX_API_KEY_LENGTH} characters)")
        if api_key:
            # 32 hex chars (128 bits) for collision resistance
            key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
            return f"apikey:{key_hash}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"

    ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
    return f"ip:{ip_hash}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Rate limits are applied per API key if available, otherwise per IP,
    unless a custom identity_resolver is given.
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        identity_resolver: Optional[IdentityResolver] = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.identity_resolver = identity_resolver or resolve_client_identity

    async def _resolve_identity(self, request: Request) -> Optional[str]:
        identity = self.identity_resolver(request)
        if inspect.isawaitable(identity):
            identity = await identity
        return identity

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        try:
            identity = await self._resolve_identity(request)
            decision = await self.limiter.decide(identity)
        except RateLimiterError as e:
            logger.warning(f"Rate limiter failed for {request.url.path}: {e.message}")
            return JSONResponse(
                status_code=e.status_code,
                content={"error": "rate_limiter_error", "message": e.message},
            )

        if not decision.allowed:
            headers = decision.headers()
            if decision.degraded:
                headers["X-RateLimit-Degraded"] = "true"
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retry_after": int(headers["Retry-After"]),
                },
                headers=headers,
            )

        response = await call_next(request)

        for name, value in decision.headers().items():
            response.headers[name] = value
        if decision.degraded:
            response.headers["X-RateLimit-Degraded"] = "true"

        return response
