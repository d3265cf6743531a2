"""
Proxy caching package.

Two tiers consulted in a fixed order: a shared Redis tier (best effort,
possibly absent) and a bounded in-process LRU tier. Entries are replaced
wholesale and never returned past their expiry.
"""

from .entry import CacheEntry, CacheLookup, CacheTier, InvalidationResult
from .local_cache import LocalCache
from .shared_cache import RedisSharedCache, SharedCacheClient
from .tier_manager import CacheTierManager

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheTier",
    "CacheTierManager",
    "InvalidationResult",
    "LocalCache",
    "RedisSharedCache",
    "SharedCacheClient",
]
