"""Pytest configuration for shopstate tests."""

import os

import fakeredis
import pytest
import redis

from shopstate.core.config import RuntimeConfig, ShopStateConfig
from shopstate.core.state import ShopState


# ---------------------------------------------------------------------------
# Store: fakeredis by default.  Set REDIS_TEST_URL (e.g. redis://localhost:6379/15)
# to run the same tests against a real Redis; they are skipped if it is down.
# ---------------------------------------------------------------------------

_REDIS_TEST_URL = os.getenv("REDIS_TEST_URL")


@pytest.fixture
def client():
    if _REDIS_TEST_URL:
        c = redis.from_url(_REDIS_TEST_URL, decode_responses=True, socket_connect_timeout=2)
        try:
            c.ping()
        except redis.RedisError:
            pytest.skip("Redis not available")
    else:
        c = fakeredis.FakeRedis(decode_responses=True)
    c.flushdb()
    yield c
    c.flushdb()


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runtime():
    # Short idle periods so worker-thread tests finish quickly
    return RuntimeConfig(ShopStateConfig(reaper_idle=0.01, refresher_idle=0.01, rescale_period=0.05))


@pytest.fixture
def state(client, runtime, clock):
    return ShopState(client, runtime, clock=clock)
