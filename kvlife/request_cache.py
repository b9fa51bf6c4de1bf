"""
Request cache gate: serve popular item pages from a 5-minute Redis cache.

A request is cacheable when it parses as a URL, names an item in its
``item`` query parameter, carries no ``_`` cache-busting parameter, and the
item ranks within the top CACHEABLE_RANK_LIMIT of viewed: (ascending score,
since every view decrements it).

Caching is an optimization only: when a producer is supplied, it is called
for uncacheable requests and whenever Redis fails, so the caller always gets
content.
"""

import hashlib
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from redis.exceptions import RedisError

from kvlife import cache_policy
from kvlife.errors import StoreUnavailableError
from kvlife.metrics import metrics_collector
from kvlife.store.client import StoreClient
from kvlife.utils.logger import get_logger

logger = get_logger("request_cache")

Producer = Callable[[str], str]


def parse_params(request: str) -> Optional[Dict[str, List[str]]]:
    """Return the query parameters of a request URL, or None if it is malformed."""
    try:
        parts = urlsplit(request)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parse_qs(parts.query, keep_blank_values=True)


def extract_item_id(params: Dict[str, List[str]]) -> Optional[str]:
    values = params.get(cache_policy.ITEM_PARAM) or []
    for value in values:
        if value:
            return value
    return None


def is_dynamic(params: Dict[str, List[str]]) -> bool:
    return cache_policy.DYNAMIC_PARAM in params


def hash_request(request: str) -> str:
    """
    Deterministic fingerprint of a request string.

    Identical requests always produce identical keys; distinct requests
    collide only on a sha256 prefix match.
    """
    return hashlib.sha256(request.encode()).hexdigest()[:cache_policy.FINGERPRINT_LENGTH]


def can_cache(store: StoreClient, request: str) -> bool:
    """
    Decide whether a request's response may be cached.

    Raises:
        StoreUnavailableError: the popularity lookup failed
    """
    params = parse_params(request)
    if params is None:
        return False
    item_id = extract_item_id(params)
    if not item_id or is_dynamic(params):
        return False
    try:
        rank = store.client.zrank(store.popularity_key(), item_id)
    except RedisError as e:
        raise StoreUnavailableError(f"popularity lookup failed for item {item_id}: {e}") from e
    return rank is not None and rank < cache_policy.CACHEABLE_RANK_LIMIT


def cache_request(store: StoreClient, request: str, producer: Optional[Producer] = None) -> Optional[str]:
    """
    Return the response for a request, from cache when possible.

    - Uncacheable: producer(request), or None without a producer.
    - Cache hit: the stored content; the producer is not called.
    - Cache miss: producer(request), stored for REQUEST_CACHE_TTL seconds;
      None without a producer.

    Raises:
        StoreUnavailableError: Redis failed and no producer was supplied
    """
    try:
        cacheable = can_cache(store, request)
    except StoreUnavailableError as e:
        if producer is None:
            raise
        logger.warning("request_cache: cacheability check failed, serving uncached error=%s", e)
        metrics_collector.record_cache_bypass()
        return producer(request)

    if not cacheable:
        metrics_collector.record_cache_bypass()
        return producer(request) if producer else None

    page_key = store.request_key(hash_request(request))
    try:
        content = store.client.get(page_key)
    except RedisError as e:
        if producer is None:
            raise StoreUnavailableError(f"cache read failed for {page_key}: {e}") from e
        logger.warning("request_cache: read failed key=%s, serving uncached error=%s", page_key, e)
        metrics_collector.record_cache_bypass()
        return producer(request)

    if content is not None:
        metrics_collector.record_cache_hit()
        return content

    metrics_collector.record_cache_miss()
    if producer is None:
        return None

    content = producer(request)
    if content is not None:
        try:
            store.client.setex(page_key, cache_policy.REQUEST_CACHE_TTL, content)
        except RedisError as e:
            logger.warning("request_cache: write failed key=%s error=%s", page_key, e)
    return content
