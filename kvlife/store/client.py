"""
Redis store adapter shared by the session entry points, the request cache
gate, article voting and the background loops.

Redis is the only shared state. Nothing here holds in-process state besides
the connection; each background loop opens its own StoreClient and closes it
on exit.

Key names follow kvlife.cache_policy, optionally prefixed with a namespace:
- login:, recent:, viewed:{token}, cart:{token}   (sessions)
- delay:, schedule:, inv:{row_id}                 (row cache)
- viewed:, cache:{fingerprint}                    (request cache)
- article:*, score:*, time:, voted:*, group:*     (articles)

Supports both local Redis and Upstash (cloud-hosted) via UPSTASH_REDIS_URL.
"""

from typing import Optional

import redis

from kvlife import cache_policy
from kvlife.core.config import KvlifeConfig, get_config
from kvlife.utils.logger import get_logger

logger = get_logger("store")


class StoreClient:
    """
    Redis connection plus the key builders for every entity namespace.

    Primitive operations are issued directly on ``self.client`` (a
    ``redis.Redis`` with ``decode_responses=True``); this class adds no logic
    of its own besides naming.
    """

    def __init__(
        self,
        config: Optional[KvlifeConfig] = None,
        namespace: str = "",
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize Redis connection.

        Connection priority:
        1. An already-built client (tests, callers with their own pool)
        2. config.redis_url (cloud-hosted, rediss:// TLS)
        3. config.redis_host + config.redis_port + config.redis_db (local)

        Args:
            config: Connection settings; defaults to the global config
            namespace: Optional prefix for every key, e.g. "shop"
            client: Existing Redis client to wrap
        """
        self.namespace = namespace
        if client is not None:
            self.client = client
            return

        config = config or get_config()
        if config.redis_url:
            self.client = redis.from_url(
                config.redis_url,
                decode_responses=True,
                socket_connect_timeout=config.socket_timeout,
                socket_timeout=config.socket_timeout,
            )
        else:
            self.client = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                decode_responses=True,
                socket_connect_timeout=config.socket_timeout,
                socket_timeout=config.socket_timeout,
            )

    def _key(self, key: str) -> str:
        """Prefix key with namespace."""
        if not self.namespace:
            return key
        return f"{self.namespace}:{key}"

    def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        """Release the connection."""
        try:
            self.client.close()
        except redis.RedisError as e:
            logger.warning("store: close failed error=%s", e)

    def flush_all(self) -> bool:
        """Flush the selected database. Use carefully, only for maintenance or tests."""
        try:
            self.client.flushdb()
            return True
        except redis.RedisError as e:
            logger.error("store: flush failed error=%s", e)
            return False

    #
    # Sessions
    #

    def login_key(self) -> str:
        return self._key(cache_policy.LOGIN_KEY)

    def recent_key(self) -> str:
        return self._key(cache_policy.RECENT_KEY)

    def viewed_key(self, token: str) -> str:
        return self._key(f"{cache_policy.VIEWED_PREFIX}{token}")

    def cart_key(self, token: str) -> str:
        return self._key(f"{cache_policy.CART_PREFIX}{token}")

    #
    # Row cache
    #

    def delay_key(self) -> str:
        return self._key(cache_policy.DELAY_KEY)

    def schedule_key(self) -> str:
        return self._key(cache_policy.SCHEDULE_KEY)

    def row_key(self, row_id: str) -> str:
        return self._key(f"{cache_policy.ROW_CACHE_PREFIX}{row_id}")

    #
    # Request cache
    #

    def popularity_key(self) -> str:
        return self._key(cache_policy.POPULARITY_KEY)

    def request_key(self, fingerprint: str) -> str:
        return self._key(f"{cache_policy.REQUEST_CACHE_PREFIX}{fingerprint}")

    #
    # Articles
    #

    def article_counter_key(self) -> str:
        return self._key(cache_policy.ARTICLE_COUNTER_KEY)

    def article_key(self, article_id: str) -> str:
        return self._key(f"{cache_policy.ARTICLE_PREFIX}{article_id}")

    def score_key(self) -> str:
        return self._key(cache_policy.SCORE_KEY)

    def time_key(self) -> str:
        return self._key(cache_policy.TIME_KEY)

    def voted_key(self, article_id: str) -> str:
        return self._key(f"{cache_policy.VOTED_PREFIX}{article_id}")

    def group_key(self, group: str) -> str:
        return self._key(f"{cache_policy.GROUP_PREFIX}{group}")


def connect(config: Optional[KvlifeConfig] = None, namespace: str = "") -> StoreClient:
    """Open a new store connection. Background loops call this once each."""
    return StoreClient(config=config, namespace=namespace)
