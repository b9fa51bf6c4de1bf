"""
Tests for loop supervision: cooperative shutdown, stuck loops, loops that die
on unexpected errors, and retry on store errors.
"""

import threading

import pytest
import redis

from kvlife.errors import LoopFailedError, ShutdownTimeoutError
from kvlife.metrics import metrics_collector
from kvlife.supervisor import LoopSupervisor
from kvlife.workers.base import BackgroundLoop
from kvlife.workers.reaper import CartReaper
from kvlife.workers.row_cache import RowCacheScheduler


class StuckLoop(BackgroundLoop):
    name = "stuck-loop"

    def __init__(self, release, **kwargs):
        super().__init__(**kwargs)
        self.release = release

    def run_once(self, store, now=None):
        self.release.wait(10)
        return 0.01


class CrashingLoop(BackgroundLoop):
    name = "crashing-loop"

    def run_once(self, store, now=None):
        raise RuntimeError("bug in iteration")


class FlakyStoreLoop(BackgroundLoop):
    name = "flaky-loop"

    def __init__(self, failures, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.calls = 0

    def run_once(self, store, now=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise redis.exceptions.ConnectionError("connection reset")
        return 0.01


class TestLoopSupervisor:
    def test_start_and_stop_all(self, store, config, connection_factory):
        supervisor = LoopSupervisor()
        supervisor.add(RowCacheScheduler(connection_factory=connection_factory, config=config))
        supervisor.add(CartReaper(limit=0, connection_factory=connection_factory, config=config))
        supervisor.start_all()
        assert all(loop.is_running for loop in supervisor.loops)

        supervisor.stop_all(timeout=2.0)
        assert not any(loop.is_running for loop in supervisor.loops)
        supervisor.check()

    def test_stuck_loop_is_fatal(self, config, connection_factory):
        release = threading.Event()
        loop = StuckLoop(release, connection_factory=connection_factory, config=config)
        supervisor = LoopSupervisor([loop])
        supervisor.start_all()
        try:
            with pytest.raises(ShutdownTimeoutError):
                supervisor.stop_all(timeout=0.2)
            assert loop.is_running
        finally:
            release.set()
            loop.join(2.0)
        assert not loop.is_running

    def test_crashed_loop_is_reported(self, config, connection_factory, wait_until):
        loop = CrashingLoop(connection_factory=connection_factory, config=config)
        supervisor = LoopSupervisor([loop])
        supervisor.start_all()
        assert wait_until(lambda: not loop.is_running)
        with pytest.raises(LoopFailedError):
            supervisor.check()
        assert isinstance(loop.failure, RuntimeError)
        supervisor.stop_all(timeout=1.0)


class TestBackgroundLoop:
    def test_store_errors_are_retried(self, store, config, connection_factory, wait_until):
        loop = FlakyStoreLoop(3, connection_factory=connection_factory, config=config)
        loop.start()
        try:
            assert wait_until(lambda: loop.calls > 4)
            assert loop.is_running
            assert loop.failure is None
        finally:
            loop.stop()
        assert metrics_collector.error_counts["flaky-loop"] == 3

    def test_stop_without_start(self, config):
        loop = CrashingLoop(config=config)
        loop.stop()
        assert not loop.is_running

    def test_restart_after_stop(self, store, config, connection_factory):
        loop = FlakyStoreLoop(0, connection_factory=connection_factory, config=config)
        loop.start()
        loop.stop()
        loop.start()
        assert loop.is_running
        loop.stop()
        assert not loop.is_running
