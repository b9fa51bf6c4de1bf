"""
Background loops sharing Redis without an in-process lock:
- RowCacheScheduler: refreshes or cancels scheduled row cache entries
- SessionReaper / CartReaper: bound live sessions by evicting the oldest
"""
from kvlife.workers.base import BackgroundLoop
from kvlife.workers.reaper import CartReaper, SessionReaper
from kvlife.workers.row_cache import RowCacheScheduler, get_cached_row, schedule_row_cache

__all__ = [
    "BackgroundLoop",
    "SessionReaper",
    "CartReaper",
    "RowCacheScheduler",
    "schedule_row_cache",
    "get_cached_row",
]
