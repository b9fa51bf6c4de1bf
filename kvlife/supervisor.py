"""
LoopSupervisor: owns the background loops of one process.

Starts every loop, reports loops that died on an unexpected error, and stops
them cooperatively with a bounded wait. A loop still alive past the bound is
a stuck iteration and is raised as ShutdownTimeoutError, never retried.

Usage:
    supervisor = LoopSupervisor()
    supervisor.add(RowCacheScheduler())
    supervisor.add(CartReaper(limit=10_000_000))
    supervisor.start_all()
    ...
    supervisor.check()      # raises LoopFailedError if a loop died
    supervisor.stop_all()
"""
import time
from typing import List, Optional

from kvlife.core.config import get_config
from kvlife.errors import LoopFailedError, ShutdownTimeoutError
from kvlife.utils.logger import get_logger
from kvlife.workers.base import BackgroundLoop

logger = get_logger("supervisor")


class LoopSupervisor:

    def __init__(self, loops: Optional[List[BackgroundLoop]] = None):
        self.loops: List[BackgroundLoop] = list(loops or [])

    def add(self, loop: BackgroundLoop) -> BackgroundLoop:
        self.loops.append(loop)
        return loop

    def start_all(self) -> None:
        for loop in self.loops:
            loop.start()
        logger.info("supervisor: started loops=%s", [loop.name for loop in self.loops])

    def check(self) -> None:
        """Raise LoopFailedError for the first loop that exited on an unexpected error."""
        for loop in self.loops:
            if loop.failure is not None:
                raise LoopFailedError(f"{loop.name} failed: {loop.failure}") from loop.failure

    def stop_all(self, timeout: Optional[float] = None) -> None:
        """
        Signal every loop, then wait for all of them within one shared bound.

        Raises:
            ShutdownTimeoutError: naming every loop still alive after the bound
        """
        bound = get_config().shutdown_timeout if timeout is None else timeout
        for loop in self.loops:
            loop.request_stop()

        deadline = time.monotonic() + bound
        stuck = []
        for loop in self.loops:
            remaining = max(deadline - time.monotonic(), 0.0)
            try:
                loop.join(remaining)
            except ShutdownTimeoutError:
                stuck.append(loop.name)
        if stuck:
            raise ShutdownTimeoutError(f"loops still running after {bound}s: {', '.join(stuck)}")
        logger.info("supervisor: all loops stopped")
