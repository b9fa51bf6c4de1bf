"""
kvlife caching and eviction policy: key layout, TTLs, fixed limits.

This module documents the lifecycle strategy. It is imported by the store
adapter for key prefixes and by the request cache gate, the session entry
points, the article module and the background loops for their constants.

Architecture:
  Redis           → the only shared state; every loop owns its own connection
  Row cache       → refreshed on a schedule, cancelled with delay <= 0
  Session reaper  → bounds recent: to a configured limit, oldest first
  Request cache   → read-through, TTL-based expiry, popular items only

All request cache entries expire automatically via TTL. Sessions and carts
are never expired by TTL; only the reapers remove them.
"""

# ────────────────────────────────────────────────────────────────────────────
# Key Table
# ────────────────────────────────────────────────────────────────────────────
#
# Data Type          | Key Pattern            | Type  | Lifetime
# -------------------+------------------------+-------+--------------------------
# Session            | login: (token → user)  | hash  | until reaped
# Activity index     | recent:                | zset  | until reaped
# Viewed items       | viewed:{token}         | zset  | until reaped, capped at 25
# Popularity rank    | viewed:                | zset  | never pruned
# Cart               | cart:{token}           | hash  | until reaped (cart reaper)
# Refresh interval   | delay:                 | zset  | until delay <= 0 observed
# Due-time index     | schedule:              | zset  | until delay <= 0 observed
# Row cache          | inv:{row_id}           | str   | until delay <= 0 observed
# Request cache      | cache:{sha256[:16]}    | str   | 5 min TTL
# Article counter    | article:               | str   | persistent
# Article            | article:{id}           | hash  | persistent
# Article ranking    | score: / time:         | zset  | persistent
# Voters             | voted:{id}             | set   | one week TTL
# Group membership   | group:{name}           | set   | persistent
# Group ranking      | score:{name}           | zset  | 60 sec TTL
#
# ────────────────────────────────────────────────────────────────────────────
# Consistency Expectations
# ────────────────────────────────────────────────────────────────────────────
#
# - recent: may exceed the session limit between reaper polls. The reaper
#   converges on the limit; it is not a hard bound.
# - A row's cached value may be stale by up to one poll after its delay
#   changes. Cancellation (delay <= 0) is eventual, not immediate.
# - Cacheability is only checked when a page is written. A cached page is
#   served until its TTL even if the item falls out of the top 10,000.
# - viewed: only ever decrements. No decay is applied.
#
# ────────────────────────────────────────────────────────────────────────────
# Concurrency
# ────────────────────────────────────────────────────────────────────────────
#
# Read-decide-write sequences run under WATCH + MULTI/EXEC:
#   - reaper: WATCH recent:, read oldest tokens, delete them in one EXEC.
#     A concurrent update_token aborts the batch and it is re-read.
#   - scheduler: WATCH schedule:, peek the due row, claim it by pushing its
#     due-time forward in one EXEC. A second scheduler loses the claim.
# Eviction and cancellation are idempotent; a duplicate run deletes nothing.

# Session entry points
VIEWED_ITEMS_LIMIT = 25             # Keep the 25 most recent views per token
POPULARITY_VIEW_INCREMENT = -1      # viewed: score per view (lower = more popular)

# Session reaper
REAPER_MAX_BATCH = 100              # Sessions evicted per iteration, at most

# Request cache gate
REQUEST_CACHE_TTL = 300             # 5 minutes
CACHEABLE_RANK_LIMIT = 10_000       # Only the top 10,000 viewed items are cached
ITEM_PARAM = "item"                 # Query parameter carrying the item id
DYNAMIC_PARAM = "_"                 # Cache-busting parameter
FINGERPRINT_LENGTH = 16             # sha256 hex digest prefix

# Article voting
ONE_WEEK_IN_SECONDS = 7 * 86400
VOTE_SCORE = 432                    # 86400 / 200: 200 votes lift an article by a day
ARTICLES_PER_PAGE = 25
GROUP_RANKING_TTL = 60              # Cached group intersections live 1 minute

# Key prefixes
LOGIN_KEY = "login:"
RECENT_KEY = "recent:"
VIEWED_PREFIX = "viewed:"
POPULARITY_KEY = "viewed:"
CART_PREFIX = "cart:"
DELAY_KEY = "delay:"
SCHEDULE_KEY = "schedule:"
ROW_CACHE_PREFIX = "inv:"
REQUEST_CACHE_PREFIX = "cache:"
ARTICLE_COUNTER_KEY = "article:"
ARTICLE_PREFIX = "article:"
SCORE_KEY = "score:"
TIME_KEY = "time:"
VOTED_PREFIX = "voted:"
GROUP_PREFIX = "group:"
