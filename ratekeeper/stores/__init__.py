"""Counter stores.

``LocalStore`` keeps state in process memory; ``RemoteStore`` shares it
across processes through Redis.
"""

from ratekeeper.stores.base import CounterStore, FloatState, validate_key
from ratekeeper.stores.local import LocalStore
from ratekeeper.stores.remote import RemoteStore

__all__ = [
    "CounterStore",
    "FloatState",
    "validate_key",
    "LocalStore",
    "RemoteStore",
]
