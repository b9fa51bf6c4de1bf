"""
Session and cart reapers: bound the number of live sessions in recent: by
evicting the least recently active tokens.

Each iteration reads the session count under WATCH recent:. Under the limit
the loop idles; over it, the oldest min(count - limit, 100) tokens are
removed in one MULTI/EXEC together with their per-token keys and their
login: entry. If a session is touched between the read and the EXEC, the
transaction aborts and the next iteration re-reads the ordering.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from redis.exceptions import WatchError

from kvlife import cache_policy
from kvlife.core.config import KvlifeConfig
from kvlife.metrics import metrics_collector
from kvlife.store.client import StoreClient
from kvlife.utils.logger import get_logger
from kvlife.workers.base import BackgroundLoop

logger = get_logger("workers.reaper")


class SessionReaper(BackgroundLoop):
    """Evicts the oldest sessions and their viewed-items index."""

    name = "session-reaper"

    def __init__(
        self,
        limit: Optional[int] = None,
        connection_factory: Optional[Callable[[], StoreClient]] = None,
        config: Optional[KvlifeConfig] = None,
    ):
        """
        Args:
            limit: Target number of live sessions; 0 drains everything.
                   Defaults to config.session_limit.
        """
        super().__init__(connection_factory=connection_factory, config=config)
        self.limit = self.config.session_limit if limit is None else limit
        if self.limit < 0:
            raise ValueError("limit must be >= 0")
        if self.config.reaper_batch_size < 1:
            raise ValueError("reaper_batch_size must be >= 1")
        self.batch_size = min(self.config.reaper_batch_size, cache_policy.REAPER_MAX_BATCH)
        self.idle_interval = self.config.reaper_idle_interval

    def token_keys(self, store: StoreClient, token: str) -> List[str]:
        """Per-token keys deleted along with the session."""
        return [store.viewed_key(token)]

    def run_once(self, store: StoreClient, now: Optional[float] = None) -> float:
        recent = store.recent_key()
        with store.client.pipeline() as pipe:
            try:
                pipe.watch(recent)
                size = pipe.zcard(recent)
                if size <= self.limit:
                    metrics_collector.record_iteration(self.name)
                    return self.idle_interval

                end_index = min(size - self.limit, self.batch_size)
                tokens = pipe.zrange(recent, 0, end_index - 1)
                keys = [key for token in tokens for key in self.token_keys(store, token)]

                pipe.multi()
                pipe.delete(*keys)
                pipe.hdel(store.login_key(), *tokens)
                pipe.zrem(recent, *tokens)
                pipe.execute()
            except WatchError:
                logger.debug("%s: recent: changed during eviction, retrying", self.name)
                metrics_collector.record_iteration(self.name)
                return 0.0

        metrics_collector.record_iteration(self.name, len(tokens))
        logger.info("%s: evicted=%s size_before=%s limit=%s", self.name, len(tokens), size, self.limit)
        return 0.0


class CartReaper(SessionReaper):
    """Session reaper that also deletes each evicted token's cart."""

    name = "cart-reaper"

    def token_keys(self, store: StoreClient, token: str) -> List[str]:
        return super().token_keys(store, token) + [store.cart_key(token)]
