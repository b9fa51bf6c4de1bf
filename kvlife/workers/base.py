"""
BackgroundLoop: a long-lived worker thread polling Redis with a cooperative
stop signal.

Architecture:
  - start() opens one store connection and runs it inside a dedicated thread
  - the thread calls run_once(store) until stop is requested; run_once
    returns how long to idle before the next iteration (0 = go again)
  - idling waits on the stop event, so stop() is observed promptly but
    never in the middle of an iteration
  - store errors back off exponentially and retry; anything else is
    recorded in ``failure`` and ends the loop for the supervisor to report

Usage:
    reaper = SessionReaper(limit=1000)
    reaper.start()
    ...
    reaper.stop()   # raises ShutdownTimeoutError if the loop is stuck
"""

import threading
from typing import Callable, Optional

from redis.exceptions import RedisError

from kvlife.core.config import KvlifeConfig, get_config
from kvlife.errors import ShutdownTimeoutError
from kvlife.metrics import metrics_collector
from kvlife.store.client import StoreClient, connect
from kvlife.utils.logger import get_logger

logger = get_logger("workers")


class BackgroundLoop:
    """
    Base class for the reapers and the row cache scheduler.

    Subclasses implement run_once(store, now=None) -> float.
    """

    name = "background-loop"

    def __init__(
        self,
        connection_factory: Optional[Callable[[], StoreClient]] = None,
        config: Optional[KvlifeConfig] = None,
    ):
        """
        Args:
            connection_factory: Returns a new StoreClient; called once per
                                start(). Defaults to kvlife.store.connect.
            config: Loop settings; defaults to the global config.
        """
        self.config = config or get_config()
        self._connection_factory = connection_factory or (lambda: connect(self.config))
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.failure: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the loop in its own thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self.failure = None
        store = self._connection_factory()
        self._thread = threading.Thread(target=self._loop, args=(store,), name=self.name, daemon=True)
        self._thread.start()
        logger.info("%s started", self.name)

    def request_stop(self) -> None:
        """Signal the loop to exit at its next iteration boundary."""
        self._stop_event.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal stop and wait for the thread to exit."""
        self.request_stop()
        self.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the thread to exit; a thread still alive after the bound is fatal."""
        if self._thread is None:
            return
        bound = self.config.shutdown_timeout if timeout is None else timeout
        self._thread.join(bound)
        if self._thread.is_alive():
            raise ShutdownTimeoutError(f"{self.name} still running {bound}s after stop was requested")
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def run_once(self, store: StoreClient, now: Optional[float] = None) -> float:
        """Do at most one unit of work. Returns seconds to idle afterwards."""
        raise NotImplementedError

    def _loop(self, store: StoreClient) -> None:
        backoff = self.config.retry_backoff_initial
        try:
            while not self._stop_event.is_set():
                try:
                    idle = self.run_once(store)
                except RedisError as e:
                    metrics_collector.record_error(self.name)
                    logger.warning("%s: store error=%s retry_in=%.2fs", self.name, e, backoff)
                    self._stop_event.wait(backoff)
                    backoff = min(backoff * 2, self.config.retry_backoff_max)
                    continue
                except Exception as e:
                    metrics_collector.record_error(self.name)
                    logger.error("%s: unexpected error, loop exiting: %s", self.name, e, exc_info=True)
                    self.failure = e
                    return
                backoff = self.config.retry_backoff_initial
                if idle > 0:
                    self._stop_event.wait(idle)
        finally:
            store.close()
            logger.info("%s stopped", self.name)
