"""
kvlife - lifecycle management for Redis-backed session and cache state

- Row cache scheduler driven by a due-time sorted set
- Session and cart reapers bounding the number of live sessions
- Request cache gate for popular item pages
"""

from kvlife.core.config import KvlifeConfig, get_config, set_config
from kvlife.store.client import StoreClient, connect
from kvlife.sessions import update_token, check_token, add_to_cart, get_cart
from kvlife.request_cache import cache_request, can_cache
from kvlife.workers import RowCacheScheduler, SessionReaper, CartReaper, schedule_row_cache
from kvlife.supervisor import LoopSupervisor

__all__ = [
    'KvlifeConfig',
    'get_config',
    'set_config',
    'StoreClient',
    'connect',
    'update_token',
    'check_token',
    'add_to_cart',
    'get_cart',
    'cache_request',
    'can_cache',
    'RowCacheScheduler',
    'SessionReaper',
    'CartReaper',
    'schedule_row_cache',
    'LoopSupervisor',
]

__version__ = '0.1.0'
