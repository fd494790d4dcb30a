"""Shared fixtures for ratekeeper tests."""

import fakeredis
import pytest

from ratekeeper.core.clock import ManualClock


@pytest.fixture
def clock():
    return ManualClock(0.0)


@pytest.fixture
def fake_redis():
    """In-process Redis that runs the store's Lua scripts (fakeredis[lua])."""
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
