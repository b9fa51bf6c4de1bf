"""
Session entry points: login/refresh, token lookup and cart mutation.

These are the writers whose state the session and cart reapers prune.
Each write is issued as a single MULTI/EXEC pipeline so a reaper never
observes a half-updated session.
"""
from __future__ import annotations

import time
from typing import Dict, Optional

from kvlife import cache_policy
from kvlife.store.client import StoreClient
from kvlife.utils.logger import get_logger

logger = get_logger("sessions")


def check_token(store: StoreClient, token: str) -> Optional[str]:
    """Return the user logged in with this token, or None."""
    return store.client.hget(store.login_key(), token)


def update_token(
    store: StoreClient,
    token: str,
    user: str,
    item: Optional[str] = None,
    now: Optional[float] = None,
) -> None:
    """
    Record activity for a token and, optionally, an item view.

    The viewed-items index for the token is trimmed to the most recent
    VIEWED_ITEMS_LIMIT entries in the same transaction, and the item's
    popularity score is decremented (lower score = more views).
    """
    timestamp = time.time() if now is None else now
    pipe = store.client.pipeline(transaction=True)
    pipe.hset(store.login_key(), token, user)
    pipe.zadd(store.recent_key(), {token: timestamp})
    if item:
        viewed = store.viewed_key(token)
        pipe.zadd(viewed, {item: timestamp})
        pipe.zremrangebyrank(viewed, 0, -(cache_policy.VIEWED_ITEMS_LIMIT + 1))
        pipe.zincrby(store.popularity_key(), cache_policy.POPULARITY_VIEW_INCREMENT, item)
    pipe.execute()
    logger.debug("sessions: method=update_token token=%s item=%s", token, item)


def add_to_cart(store: StoreClient, token: str, item: str, count: int) -> None:
    """Set an item's quantity in the token's cart; count <= 0 removes it."""
    if count <= 0:
        store.client.hdel(store.cart_key(token), item)
    else:
        store.client.hset(store.cart_key(token), item, count)


def get_cart(store: StoreClient, token: str) -> Dict[str, int]:
    """Return item → quantity for the token's cart (empty if none)."""
    raw = store.client.hgetall(store.cart_key(token))
    return {item: int(qty) for item, qty in raw.items()}
