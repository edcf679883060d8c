"""Response caching for steadyhttp.

:class:`ResponseCache` derives a cache key from the request identity
(method, URL, headers and handler fingerprint) and keeps handler results in
a pluggable :class:`CacheStore` with a per-request TTL.  Stores:
:class:`MemoryCacheStore` (in process) and :class:`DiskCacheStore`
(persistent, via :mod:`diskcache`).
"""

from steadyhttp.cache.cache import CacheEntry, ResponseCache
from steadyhttp.cache.stores import CacheStore, DiskCacheStore, MemoryCacheStore

__all__ = ["CacheEntry", "CacheStore", "DiskCacheStore", "MemoryCacheStore", "ResponseCache"]
