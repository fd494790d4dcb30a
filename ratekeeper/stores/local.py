"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: keys are serialized through striped locks whose critical
  sections contain no I/O and no awaits, so the store can be shared by
  threads and by several event loops.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from ratekeeper.core.clock import Clock, SystemClock
from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.stores.base import (
    DEFAULT_MAX_KEY_LENGTH,
    CounterStore,
    FloatState,
    T,
    UpdateFn,
    validate_key,
)

logger = get_logger(__name__)


@dataclass
class _Entry:
    """Internal entry with TTL tracking."""

    value: Union[int, FloatState]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class LocalStore(CounterStore):
    """Single-process counter store with per-key expiry.

    Expired entries are dropped lazily on access and by a sweep that runs
    at most once per sweep_interval. When the store reaches max_entries,
    the entries closest to expiry are evicted first to make room. Eviction
    may drop a live window counter or bucket, which hands that identity a
    fresh window or a full bucket early.
    """

    name = "local"

    DEFAULT_MAX_ENTRIES = 100_000
    DEFAULT_SWEEP_INTERVAL = 30.0
    DEFAULT_LOCK_STRIPES = 64
    EVICTION_FRACTION = 0.2

    def __init__(
        self,
        clock: Optional[Clock] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
        max_key_length: int = DEFAULT_MAX_KEY_LENGTH,
    ) -> None:
        """Initialize the local store.

        Args:
            clock: Time source for expiry (defaults to wall clock)
            max_entries: Soft cap on stored keys
            sweep_interval: Minimum seconds between expiry sweeps
            lock_stripes: Number of locks keys are hashed onto
            max_key_length: Maximum UTF-8 key length in bytes
        """
        self._clock = clock or SystemClock()
        self._max_entries = max_entries
        self._sweep_interval = sweep_interval
        self._max_key_length = max_key_length
        self._entries: Dict[str, _Entry] = {}
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(max(1, lock_stripes))]
        self._sweep_lock = threading.Lock()
        self._last_sweep = self._clock.now()

    def __len__(self) -> int:
        return len(self._entries)

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    async def incr_with_expiry(self, key: str, ttl: float) -> int:
        validate_key(key, self._max_key_length)
        now = self._clock.now()
        self._maybe_sweep(now)
        with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now) or not isinstance(entry.value, int):
                self._entries[key] = _Entry(value=1, expires_at=now + ttl)
                return 1
            entry.value += 1
            return entry.value

    async def get_count(self, key: str) -> int:
        validate_key(key, self._max_key_length)
        now = self._clock.now()
        with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is None or not isinstance(entry.value, int):
                return 0
            if entry.is_expired(now):
                del self._entries[key]
                return 0
            return entry.value

    async def update_float_state(
        self,
        key: str,
        default: FloatState,
        update_fn: UpdateFn,
        ttl: float,
        now: float,
    ) -> T:
        validate_key(key, self._max_key_length)
        store_now = self._clock.now()
        self._maybe_sweep(store_now)
        with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(store_now) or not isinstance(entry.value, FloatState):
                state = default
            else:
                state = entry.value
            new_state, result = update_fn(state, now)
            self._entries[key] = _Entry(value=new_state, expires_at=store_now + ttl)
        return result

    async def cleanup(self) -> None:
        """Force an expiry sweep."""
        now = self._clock.now()
        with self._sweep_lock:
            self._sweep(now)

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval and len(self._entries) < self._max_entries:
            return
        # Another thread already sweeping; skip rather than wait
        if not self._sweep_lock.acquire(blocking=False):
            return
        try:
            self._sweep(now)
        finally:
            self._sweep_lock.release()

    def _sweep(self, now: float) -> None:
        self._last_sweep = now
        removed = 0
        for key, entry in list(self._entries.items()):
            if not entry.is_expired(now):
                continue
            with self._lock_for(key):
                current = self._entries.get(key)
                if current is not None and current.is_expired(now):
                    del self._entries[key]
                    removed += 1

        if removed:
            logger.debug(f"Swept {removed} expired rate limit entries")

        if len(self._entries) >= self._max_entries:
            self._evict(now)

    def _evict(self, now: float) -> None:
        """Drop the entries closest to expiry to make room below max_entries."""
        remove_count = max(
            1, len(self._entries) - self._max_entries + int(self._max_entries * self.EVICTION_FRACTION)
        )
        candidates = sorted(list(self._entries.items()), key=lambda item: item[1].expires_at)
        evicted = 0
        for key, _ in candidates[:remove_count]:
            with self._lock_for(key):
                if self._entries.pop(key, None) is not None:
                    evicted += 1
        logger.warning(
            f"Local rate limit store reached {self._max_entries} entries; "
            f"evicted {evicted} entries closest to expiry",
            extra=get_log_context(store=self.name, reason="max_entries"),
        )
