"""
Article voting: post, vote, page through and group articles.

Articles are ranked in score: by posting time plus VOTE_SCORE per vote, so
200 votes lift an article by one day. Voting closes one week after posting;
the per-article voter set expires at the same time. Group listings are the
intersection of group:{name} with a ranking, cached for GROUP_RANKING_TTL.
"""
from __future__ import annotations

import time
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from kvlife import cache_policy
from kvlife.store.client import StoreClient
from kvlife.utils.logger import get_logger

logger = get_logger("articles")


class Article(BaseModel):
    id: str = Field(..., description="Article key, e.g. article:42")
    title: str
    link: str
    poster: str
    time: float = Field(..., description="Unix time posted")
    votes: int = 0


def _article_id(article: str) -> str:
    return article.rpartition(":")[2]


def post_article(store: StoreClient, user: str, title: str, link: str, now: Optional[float] = None) -> str:
    """Create an article voted for by its poster. Returns the new article id."""
    posted = int(time.time() if now is None else now)
    article_id = str(store.client.incr(store.article_counter_key()))
    voted = store.voted_key(article_id)
    article = store.article_key(article_id)

    pipe = store.client.pipeline(transaction=True)
    pipe.sadd(voted, user)
    pipe.expire(voted, cache_policy.ONE_WEEK_IN_SECONDS)
    pipe.hset(article, mapping={
        "title": title,
        "link": link,
        "poster": user,
        "time": posted,
        "votes": 1,
    })
    pipe.zadd(store.score_key(), {article: posted + cache_policy.VOTE_SCORE})
    pipe.zadd(store.time_key(), {article: posted})
    pipe.execute()
    logger.info("articles: method=post_article article_id=%s poster=%s", article_id, user)
    return article_id


def article_vote(store: StoreClient, user: str, article: str, now: Optional[float] = None) -> bool:
    """
    Vote for an article (by key, e.g. "article:42").

    Returns True if the vote counted; False if voting has closed, the
    article is unknown, or the user already voted.
    """
    cutoff = (time.time() if now is None else now) - cache_policy.ONE_WEEK_IN_SECONDS
    posted = store.client.zscore(store.time_key(), article)
    if posted is None or posted < cutoff:
        return False

    if not store.client.sadd(store.voted_key(_article_id(article)), user):
        return False

    pipe = store.client.pipeline(transaction=True)
    pipe.zincrby(store.score_key(), cache_policy.VOTE_SCORE, article)
    pipe.hincrby(article, "votes", 1)
    pipe.execute()
    return True


def get_articles(store: StoreClient, page: int, order: Optional[str] = None) -> List[Article]:
    """Return one page of articles, highest ranked first. Pages start at 1."""
    order = order or store.score_key()
    start = (page - 1) * cache_policy.ARTICLES_PER_PAGE
    end = start + cache_policy.ARTICLES_PER_PAGE - 1
    ids = store.client.zrevrange(order, start, end)

    pipe = store.client.pipeline(transaction=False)
    for article in ids:
        pipe.hgetall(article)
    rows = pipe.execute()
    return [Article(id=article, **row) for article, row in zip(ids, rows) if row]


def add_remove_groups(
    store: StoreClient,
    article_id: str,
    to_add: Iterable[str] = (),
    to_remove: Iterable[str] = (),
) -> None:
    article = store.article_key(article_id)
    pipe = store.client.pipeline(transaction=True)
    for group in to_add:
        pipe.sadd(store.group_key(group), article)
    for group in to_remove:
        pipe.srem(store.group_key(group), article)
    pipe.execute()


def get_group_articles(store: StoreClient, group: str, page: int, order: Optional[str] = None) -> List[Article]:
    """
    Return one page of a group's articles in ranking order.

    The group ranking is built with ZINTERSTORE (AGGREGATE MAX keeps the
    ranking score over the set's implicit 1) and reused until it expires.
    """
    order = order or store.score_key()
    key = f"{order}{group}"
    if not store.client.exists(key):
        pipe = store.client.pipeline(transaction=True)
        pipe.zinterstore(key, [store.group_key(group), order], aggregate="MAX")
        pipe.expire(key, cache_policy.GROUP_RANKING_TTL)
        pipe.execute()
    return get_articles(store, page, key)
