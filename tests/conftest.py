"""
Pytest configuration for kvlife tests.

Uses a real local Redis instance (db=15) when one is reachable, otherwise an
in-process fakeredis server. Every connection handed out by the fixtures
talks to the same server, so background loops can own their own connection
while the test inspects state through another.
"""

import os
import time

import fakeredis
import pytest
import redis

from kvlife.core.config import KvlifeConfig, set_config
from kvlife.metrics import metrics_collector
from kvlife.store.client import StoreClient

_TEST_DB = 15  # Use db=15 for tests to avoid touching real data


def _real_redis_available() -> bool:
    """Return True if a real Redis server is reachable."""
    try:
        client = redis.Redis(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            db=_TEST_DB,
            socket_connect_timeout=1,
        )
        return bool(client.ping())
    except redis.RedisError:
        return False


_REDIS_UP = _real_redis_available()


@pytest.fixture
def config():
    """Fast polling intervals so threaded tests finish quickly."""
    cfg = KvlifeConfig(
        redis_db=_TEST_DB,
        session_limit=0,
        reaper_idle_interval=0.05,
        scheduler_poll_interval=0.01,
        retry_backoff_initial=0.05,
        retry_backoff_max=0.2,
        shutdown_timeout=2.0,
    )
    set_config(cfg)
    yield cfg
    set_config(None)


@pytest.fixture
def connection_factory(config):
    """Callable returning a new StoreClient on the shared test server."""
    if _REDIS_UP:
        def factory():
            return StoreClient(
                client=redis.Redis(
                    host=os.getenv("REDIS_HOST", "localhost"),
                    port=int(os.getenv("REDIS_PORT", "6379")),
                    db=_TEST_DB,
                    decode_responses=True,
                )
            )
    else:
        server = fakeredis.FakeServer()

        def factory():
            return StoreClient(client=fakeredis.FakeRedis(server=server, decode_responses=True))
    return factory


@pytest.fixture
def store(connection_factory):
    """Flushed StoreClient for the test to read and write through."""
    s = connection_factory()
    s.flush_all()
    metrics_collector.reset()
    yield s
    s.flush_all()
    s.close()


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout elapses."""
    def _wait(predicate, timeout=3.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
