"""Logging helpers for the rate limiter.

ratekeeper is a library and never installs handlers of its own; the host
application configures the "ratekeeper" logger. Records about degraded
decisions and store failures carry their context as ``extra`` attributes
(see CONTEXT_FIELDS) for structured formatters to pick up.
"""

import logging
from typing import Any, Dict, Optional

CONTEXT_FIELDS = (
    "identity",       # Store key prefix, never the raw API key
    "namespace",
    "algorithm",
    "store",          # local or remote
    "degraded_mode",  # fail_open or fail_closed
    "reason",         # timeout, connection_error, cas_conflict, ...
)

logging.getLogger("ratekeeper").addHandler(logging.NullHandler())


def get_logger(name: str = "ratekeeper") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def get_log_context(
    identity: Optional[str] = None,
    namespace: Optional[str] = None,
    algorithm: Optional[str] = None,
    store: Optional[str] = None,
    degraded_mode: Optional[str] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a log context dictionary for use with the extra parameter.

    Unset fields are left out so they never shadow values a formatter or
    filter of the host application fills in.

    Example:
        >>> logger.warning(
        ...     "Store unavailable",
        ...     extra=get_log_context(store="remote", reason="timeout")
        ... )
    """
    context = dict(
        zip(CONTEXT_FIELDS, (identity, namespace, algorithm, store, degraded_mode, reason))
    )
    return {k: v for k, v in context.items() if v is not None}
