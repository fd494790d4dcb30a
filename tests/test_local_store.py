"""Tests for the in-memory counter store."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from ratekeeper.exceptions import InvalidKeyError, KeyTooLargeError
from ratekeeper.stores.base import FloatState
from ratekeeper.stores.local import LocalStore


def _bump(state: FloatState, now: float):
    new_state = FloatState(value=state.value + 1, timestamp=now)
    return new_state, new_state.value


class TestCounters:
    """Tests for incr_with_expiry and get_count."""

    @pytest.fixture
    def store(self, clock):
        return LocalStore(clock=clock)

    @pytest.mark.asyncio
    async def test_increments_from_one(self, store):
        assert [await store.incr_with_expiry("k", 60) for _ in range(3)] == [1, 2, 3]
        assert await store.get_count("k") == 3

    @pytest.mark.asyncio
    async def test_absent_counter_reads_zero(self, store):
        assert await store.get_count("missing") == 0

    @pytest.mark.asyncio
    async def test_counter_expires_after_ttl(self, store, clock):
        await store.incr_with_expiry("k", 60)
        clock.advance(60)
        assert await store.get_count("k") == 0
        assert await store.incr_with_expiry("k", 60) == 1

    @pytest.mark.asyncio
    async def test_ttl_only_set_on_creation(self, store, clock):
        await store.incr_with_expiry("k", 60)
        clock.advance(59)
        assert await store.incr_with_expiry("k", 60) == 2
        clock.advance(1)
        # Later increments did not extend the original expiry
        assert await store.get_count("k") == 0

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, store):
        await store.incr_with_expiry("a", 60)
        await store.incr_with_expiry("a", 60)
        assert await store.incr_with_expiry("b", 60) == 1


class TestFloatState:
    """Tests for update_float_state."""

    @pytest.fixture
    def store(self, clock):
        return LocalStore(clock=clock)

    @pytest.mark.asyncio
    async def test_uses_default_when_absent(self, store):
        result = await store.update_float_state("s", FloatState(5.0, 0.0), _bump, 30, 0.0)
        assert result == 6.0

    @pytest.mark.asyncio
    async def test_persists_new_state(self, store):
        await store.update_float_state("s", FloatState(5.0, 0.0), _bump, 30, 0.0)
        result = await store.update_float_state("s", FloatState(5.0, 0.0), _bump, 30, 1.0)
        assert result == 7.0

    @pytest.mark.asyncio
    async def test_state_expires(self, store, clock):
        await store.update_float_state("s", FloatState(5.0, 0.0), _bump, 30, 0.0)
        clock.advance(30)
        result = await store.update_float_state("s", FloatState(5.0, 0.0), _bump, 30, 30.0)
        assert result == 6.0

    @pytest.mark.asyncio
    async def test_update_refreshes_ttl(self, store, clock):
        await store.update_float_state("s", FloatState(0.0, 0.0), _bump, 30, 0.0)
        clock.advance(20)
        await store.update_float_state("s", FloatState(0.0, 0.0), _bump, 30, 20.0)
        clock.advance(20)
        result = await store.update_float_state("s", FloatState(0.0, 0.0), _bump, 30, 40.0)
        assert result == 3.0


class TestKeyValidation:
    """Tests for key constraints."""

    @pytest.mark.asyncio
    async def test_empty_key_rejected(self):
        store = LocalStore()
        with pytest.raises(InvalidKeyError):
            await store.incr_with_expiry("", 60)

    @pytest.mark.asyncio
    async def test_oversized_key_rejected(self):
        store = LocalStore(max_key_length=16)
        with pytest.raises(KeyTooLargeError) as exc_info:
            await store.incr_with_expiry("k" * 17, 60)
        assert exc_info.value.max_length == 16

    @pytest.mark.asyncio
    async def test_length_counts_utf8_bytes(self):
        store = LocalStore(max_key_length=4)
        with pytest.raises(KeyTooLargeError):
            await store.get_count("ééé")


class TestMemoryBounds:
    """Tests for sweeping and eviction."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_expired_entries(self, clock):
        store = LocalStore(clock=clock)
        for i in range(10):
            await store.incr_with_expiry(f"short:{i}", 10)
        await store.incr_with_expiry("long", 100)
        clock.advance(10)
        await store.cleanup()
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_periodic_sweep_runs_on_access(self, clock):
        store = LocalStore(clock=clock, sweep_interval=5)
        for i in range(10):
            await store.incr_with_expiry(f"client:{i}", 1)
        clock.advance(5)
        await store.incr_with_expiry("new", 60)
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_evicts_entries_closest_to_expiry_over_cap(self, clock):
        store = LocalStore(clock=clock, max_entries=10)
        for i in range(10):
            await store.incr_with_expiry(f"old:{i}", 10 + i)
        await store.incr_with_expiry("fresh", 1000)
        assert len(store) <= 10
        assert await store.get_count("fresh") == 1
        assert await store.get_count("old:0") == 0

    @pytest.mark.asyncio
    async def test_eviction_can_restart_a_live_counter(self, clock):
        store = LocalStore(clock=clock, max_entries=10)
        for i in range(10):
            await store.incr_with_expiry(f"old:{i}", 10 + i)
        await store.incr_with_expiry("fresh", 1000)
        # old:0 had not expired yet but was closest to expiry
        assert await store.incr_with_expiry("old:0", 10) == 1


class TestConcurrency:
    """Concurrent increments must never be lost."""

    @pytest.mark.asyncio
    async def test_concurrent_coroutines(self, clock):
        store = LocalStore(clock=clock)
        results = await asyncio.gather(*[store.incr_with_expiry("k", 60) for _ in range(100)])
        assert sorted(results) == list(range(1, 101))

    def test_concurrent_threads(self, clock):
        store = LocalStore(clock=clock)

        def worker(_):
            return asyncio.run(store.incr_with_expiry("k", 60))

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(worker, range(200)))

        assert sorted(results) == list(range(1, 201))
        assert asyncio.run(store.get_count("k")) == 200

    def test_concurrent_float_updates_from_threads(self, clock):
        store = LocalStore(clock=clock)

        def worker(_):
            return asyncio.run(store.update_float_state("s", FloatState(0.0, 0.0), _bump, 60, 0.0))

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(worker, range(100)))

        assert sorted(results) == [float(i) for i in range(1, 101)]
