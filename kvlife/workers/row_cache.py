"""
Row cache scheduler: keeps inv:{row_id} refreshed every ``delay`` seconds.

Two sorted sets drive it:
  delay:     row_id → refresh interval in seconds (<= 0 means stop caching)
  schedule:  row_id → unix time the row is next due

schedule_row_cache() upserts the interval and makes the row due now. The
scheduler loop peeks the earliest due row under WATCH schedule:, then either
cancels it (interval <= 0 or missing) or claims it by pushing its due-time
forward, all in one MULTI/EXEC. The row is materialized outside the
transaction and written back only while its interval is still positive. Its
next due-time is set only if no reschedule happened since the claim.

A failed materialization reschedules that row with per-row exponential
backoff; other due rows keep being served.
"""
from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel
from redis.exceptions import WatchError

from kvlife.core.config import KvlifeConfig
from kvlife.inventory import Inventory
from kvlife.metrics import metrics_collector
from kvlife.store.client import StoreClient
from kvlife.utils.logger import get_logger
from kvlife.workers.base import BackgroundLoop

logger = get_logger("workers.row_cache")


def schedule_row_cache(store: StoreClient, row_id: str, delay: float, now: Optional[float] = None) -> None:
    """Set a row's refresh interval and make it due immediately. delay <= 0 cancels."""
    timestamp = time.time() if now is None else now
    pipe = store.client.pipeline(transaction=True)
    pipe.zadd(store.delay_key(), {row_id: delay})
    pipe.zadd(store.schedule_key(), {row_id: timestamp})
    pipe.execute()
    logger.debug("row_cache: method=schedule row_id=%s delay=%s", row_id, delay)


def get_cached_row(store: StoreClient, row_id: str) -> Optional[str]:
    """Return the cached JSON for a row, or None."""
    return store.client.get(store.row_key(row_id))


def _serialize(row: Any) -> str:
    if isinstance(row, str):
        return row
    if isinstance(row, BaseModel):
        return row.model_dump_json()
    return json.dumps(row)


class RowCacheScheduler(BackgroundLoop):
    """Polls schedule: and refreshes or cancels the earliest due row."""

    name = "row-cache-scheduler"

    def __init__(
        self,
        materialize: Optional[Callable[[str], Any]] = None,
        connection_factory: Optional[Callable[[], StoreClient]] = None,
        config: Optional[KvlifeConfig] = None,
    ):
        """
        Args:
            materialize: Callable(row_id) returning the fresh row (str,
                         pydantic model or JSON-serializable value).
                         Defaults to Inventory.get.
        """
        super().__init__(connection_factory=connection_factory, config=config)
        self.materialize = materialize or Inventory.get
        self.poll_interval = self.config.scheduler_poll_interval
        # Consecutive materialization failures per row; touched only by this loop's thread
        self._failures: Dict[str, int] = {}

    def run_once(self, store: StoreClient, now: Optional[float] = None) -> float:
        schedule = store.schedule_key()
        delay_key = store.delay_key()
        with store.client.pipeline() as pipe:
            try:
                pipe.watch(schedule)
                head = pipe.zrange(schedule, 0, 0, withscores=True)
                current = time.time() if now is None else now
                if not head:
                    metrics_collector.record_iteration(self.name)
                    return self.poll_interval
                row_id, due = head[0]
                if due > current:
                    metrics_collector.record_iteration(self.name)
                    return min(self.poll_interval, due - current)

                interval = pipe.zscore(delay_key, row_id)
                pipe.multi()
                if interval is None or interval <= 0:
                    pipe.zrem(delay_key, row_id)
                    pipe.zrem(schedule, row_id)
                    pipe.delete(store.row_key(row_id))
                    pipe.execute()
                    self._failures.pop(row_id, None)
                    metrics_collector.record_iteration(self.name, 1)
                    logger.info("%s: cancelled row_id=%s", self.name, row_id)
                    return 0.0
                # Claim the row so a concurrent scheduler skips it
                claimed = current + interval
                pipe.zadd(schedule, {row_id: claimed})
                pipe.execute()
            except WatchError:
                metrics_collector.record_iteration(self.name)
                return 0.0

        self._refresh(store, row_id, due, claimed, current)
        return 0.0

    def _refresh(self, store: StoreClient, row_id: str, due: float, claimed: float, now: float) -> None:
        try:
            payload = _serialize(self.materialize(row_id))
        except Exception as e:
            self._reschedule_after_failure(store, row_id, now, e)
            return
        self._failures.pop(row_id, None)

        def _write(pipe) -> bool:
            interval = pipe.zscore(store.delay_key(), row_id)
            if interval is None or interval <= 0:
                return False
            # A reschedule since the claim keeps its own due-time
            rescheduled = pipe.zscore(store.schedule_key(), row_id) != claimed
            pipe.multi()
            pipe.set(store.row_key(row_id), payload)
            if not rescheduled:
                pipe.zadd(store.schedule_key(), {row_id: max(due + interval, now)})
            return True

        # Retries on WatchError; skips the write if the row was cancelled meanwhile
        written = store.client.transaction(
            _write, store.delay_key(), store.schedule_key(), value_from_callable=True
        )
        metrics_collector.record_iteration(self.name, 1 if written else 0)
        if written:
            logger.debug("%s: refreshed row_id=%s", self.name, row_id)
        else:
            logger.info("%s: row_id=%s cancelled during refresh, not written", self.name, row_id)

    def _reschedule_after_failure(self, store: StoreClient, row_id: str, now: float, error: Exception) -> None:
        failures = self._failures.get(row_id, 0) + 1
        self._failures[row_id] = failures
        backoff = min(
            self.config.retry_backoff_initial * (2 ** (failures - 1)),
            self.config.retry_backoff_max,
        )
        store.client.zadd(store.schedule_key(), {row_id: now + backoff}, xx=True)
        metrics_collector.record_error(self.name)
        logger.warning(
            "%s: materialize failed row_id=%s attempt=%s retry_in=%.2fs error=%s",
            self.name, row_id, failures, backoff, error,
        )
