"""Cache package for short-lived profile and quote caching."""
from .ttl_cache import TTLCache, CacheEntry

__all__ = [
    "TTLCache",
    "CacheEntry",
]
